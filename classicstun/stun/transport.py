import collections
import logging
import socket

from twisted.internet import defer, error
from twisted.internet.protocol import DatagramProtocol
from zope.interface import Interface, implementer

from classicstun.stun.agent import Endpoint


logger = logging.getLogger(__name__)

WILDCARD_ADDRESSES = ('', '0.0.0.0')


class TransportError(Exception):
    """The local socket could not be bound, or sending/receiving failed
    """


class ITransport(Interface):
    """Datagram session used to run STUN transactions
    """

    def bind():
        """Bind the local endpoint

        :return: the local :class:`Endpoint`
        :raises TransportError: if the socket can not be allocated
        """

    def send_to(data, addr):
        """Send a datagram to addr

        :raises TransportError: on send failure
        """

    def receive(timeout):
        """Wait for the next datagram

        :return: Deferred firing with the datagram bytes. Fails with
            :class:`twisted.internet.defer.TimeoutError` if nothing arrives
            within timeout seconds, or :class:`TransportError` on socket
            failure.
        """

    def close():
        """Release the socket. Pending receives fail with TransportError.
        """


def route_address(remote_host):
    """Local address the OS routes through to reach remote_host
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # connect() on UDP sends nothing, it only selects a route
        sock.connect((remote_host, 9))
        return sock.getsockname()[0]
    finally:
        sock.close()


@implementer(ITransport)
class UdpTransport(DatagramProtocol):
    def __init__(self, reactor, interface='', port=0, route_host=None):
        """
        :param interface: local interface to bind to, all interfaces if empty
        :param port: UDP port to bind to, any free port if 0
        :param route_host: when bound to all interfaces, report the local
            address used to reach this host as the bound address
        """
        self.reactor = reactor
        self.interface = interface
        self.port = port
        self.route_host = route_host
        self._listening_port = None
        self._datagrams = collections.deque()
        self._pending = None

    def bind(self):
        try:
            self._listening_port = self.reactor.listenUDP(self.port, self, self.interface)
        except error.CannotListenError as e:
            raise TransportError("Could not bind UDP {}:{}: {}".format(
                self.interface or '*', self.port, e.socketError))
        host = self._listening_port.getHost()
        address = host.host
        if address in WILDCARD_ADDRESSES and self.route_host:
            try:
                address = route_address(self.route_host)
            except OSError as e:
                logger.warning("%s No route to %s: %s", self, self.route_host, e)
        local = Endpoint(address, host.port)
        logger.info("%s Bound to %s", self, local)
        return local

    def send_to(self, data, addr):
        if self.transport is None:
            raise TransportError("Transport is not bound")
        try:
            self.transport.write(bytes(data), addr)
        except (OSError, error.MessageLengthError) as e:
            raise TransportError("Failed to send to {}:{}: {}".format(addr[0], addr[1], e))

    def receive(self, timeout):
        if self._listening_port is None:
            return defer.fail(TransportError("Transport is not bound"))
        if self._pending is not None:
            return defer.fail(TransportError("A receive is already pending"))
        if self._datagrams:
            return defer.succeed(self._datagrams.popleft())
        d = defer.Deferred(self._cancel_receive)
        self._pending = d
        d.addTimeout(timeout, self.reactor)
        return d

    def _cancel_receive(self, d):
        if self._pending is d:
            self._pending = None

    def datagramReceived(self, datagram, addr):
        logger.debug("%s Received %d bytes from %s:%d", self, len(datagram), *addr)
        if self._pending is not None:
            d, self._pending = self._pending, None
            d.callback(datagram)
        else:
            self._datagrams.append(datagram)

    def close(self):
        if self._listening_port is None:
            return
        port, self._listening_port = self._listening_port, None
        self._datagrams.clear()
        if self._pending is not None:
            d, self._pending = self._pending, None
            d.errback(TransportError("Transport closed"))
        port.stopListening()
        logger.info("%s Closed", self)

    def __str__(self):
        return "UdpTransport({}:{})".format(self.interface or '*', self.port)
