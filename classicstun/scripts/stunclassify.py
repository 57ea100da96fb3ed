"""Usage: stunclassify [options] <host> [port]

Classify the NAT in front of this host using a RFC 3489 STUN server.
"""
import logging
import sys

from twisted.internet import task
from twisted.python import log, usage

from classicstun import stun
from classicstun.stun.client import StunClient


class Options(usage.Options):
    synopsis = "[options] <host> [port]"

    optFlags = [
        ['verbose', 'v', "Log every STUN message"],
        ]

    optParameters = [
        ['interface', 'i', '', "Local interface to bind to"],
        ['port', 'p', 0, "Local UDP port to bind to", int],
        ['timeout', 't', 1.6, "Seconds to wait for each probe", float],
        ['rto', None, None, "Initial retransmission timeout, retransmit when set", float],
        ['rc', None, 7, "Maximum number of requests per probe", int],
        ]

    def parseArgs(self, host, port=stun.DEFAULT_PORT):
        self['host'] = host
        try:
            self['server-port'] = int(port)
        except ValueError:
            raise usage.UsageError("Invalid port: {!r}".format(port))


def main(reactor, config):
    client = StunClient(reactor, interface=config['interface'], port=config['port'],
                        timeout=config['timeout'], rto=config['rto'], rc=config['rc'])
    d = client.query(config['host'], config['server-port'])

    @d.addCallback
    def classified(result):
        print("NAT type:        {}".format(result.nat_type.name))
        print("Public endpoint: {}".format(result.public or "-"))
    return d


def run(argv=None):
    config = Options()
    try:
        config.parseOptions(sys.argv[1:] if argv is None else argv)
    except usage.UsageError as e:
        print("{}: {}".format(sys.argv[0], e), file=sys.stderr)
        print(config, file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(
        level=logging.DEBUG if config['verbose'] else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    log.PythonLoggingObserver().start()
    task.react(main, [config])


if __name__ == '__main__':
    run()
