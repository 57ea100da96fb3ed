from twisted.internet import defer, error
from constantly import Names, NamedConstant
from classicstun.stun.agent import Message
from classicstun.stun.transaction import StunTransaction, TransactionError
from classicstun.stun.transport import UdpTransport, TransportError
from classicstun import stun
from classicstun.stun import attributes
import collections
import logging


logger = logging.getLogger(__name__)


class NatType(Names):
    """NAT behaviour classes
    :see: http://tools.ietf.org/html/rfc3489#section-5
    """
    UDP_BLOCKED = NamedConstant()
    OPEN_INTERNET = NamedConstant()
    SYMMETRIC_UDP_FIREWALL = NamedConstant()
    FULL_CONE = NamedConstant()
    SYMMETRIC = NamedConstant()
    RESTRICTED_CONE = NamedConstant()
    PORT_RESTRICTED_CONE = NamedConstant()


class StunResult(collections.namedtuple('StunResult', 'nat_type public')):
    """Outcome of a NAT classification

    :ivar public: mapped :class:`Endpoint`, None when UDP is blocked
    """
    __slots__ = ()

    def __str__(self):
        return "{} (public={})".format(self.nat_type.name, self.public)


class ProtocolInconsistency(Exception):
    """The server broke the RFC 3489 contract during classification
    """


class StunClient(object):
    """Discover the public endpoint and NAT type of a UDP socket
    :see: http://tools.ietf.org/html/rfc3489#section-10.1
    """
    def __init__(self, reactor, interface='', port=0, timeout=1.6, rto=None,
                 rc=7, transport_factory=None):
        """
        :param interface: local interface to bind to
        :param port: local UDP port to bind to, any free port if 0
        :param timeout: seconds to wait for each probe's response
        :param rto: Retransmission TimeOut (initial value), None to disable
        :param rc: Retransmission count, maximum number of requests per probe
        :param transport_factory: callable(server_address) -> ITransport
        """
        self.reactor = reactor
        self.interface = interface
        self.port = port
        self.timeout = timeout
        self.rto = rto
        self.rc = rc
        self.transport_factory = transport_factory or self._udp_transport

    def _udp_transport(self, server_address):
        return UdpTransport(self.reactor, self.interface, self.port,
                            route_host=server_address)

    def query(self, host, port=stun.DEFAULT_PORT):
        """Classify the NAT between this host and the STUN server at host:port

        :return: Deferred firing with a :class:`StunResult`
        """
        d = self.reactor.resolve(host)
        d.addErrback(self._resolve_failed, host)
        d.addCallback(self._query, host, port)
        return d

    def _resolve_failed(self, failure, host):
        failure.trap(error.DNSLookupError)
        raise TransportError("Could not resolve STUN server {!r}: {}".format(
            host, failure.getErrorMessage()))

    @defer.inlineCallbacks
    def _query(self, address, host, port):
        server = address, port
        transport = self.transport_factory(address)
        local = transport.bind()
        logger.info("Classifying NAT using %s (%s:%d) from %s", host, address, port, local)
        try:
            result = yield self._classify(transport, local, server)
        finally:
            transport.close()
        logger.info("NAT type: %s", result)
        return result

    @defer.inlineCallbacks
    def _classify(self, transport, local, server):
        # Test I
        test1 = yield self._probe(transport, server, "Test I")
        if test1 is None:
            return StunResult(NatType.UDP_BLOCKED, None)
        mapped = test1.get_attr(stun.ATTR_MAPPED_ADDRESS).endpoint

        # Test II
        test2 = yield self._probe(transport, server, "Test II",
                                  change_ip=True, change_port=True)
        if local == mapped:
            if test2 is not None:
                return StunResult(NatType.OPEN_INTERNET, mapped)
            return StunResult(NatType.SYMMETRIC_UDP_FIREWALL, mapped)
        if test2 is not None:
            return StunResult(NatType.FULL_CONE, mapped)

        changed = test1.get_attr(stun.ATTR_CHANGED_ADDRESS)
        if changed is None:
            raise ProtocolInconsistency(
                "STUN server {}:{} sent no CHANGED-ADDRESS in response to Test I".format(
                    *server))
        changed = changed.endpoint

        # Test I(II)
        test12 = yield self._probe(transport, changed, "Test I(II)")
        if test12 is None:
            raise ProtocolInconsistency(
                "STUN server {}:{} did not answer Test I(II) on its changed address {}".format(
                    server[0], server[1], changed))
        if test12.get_attr(stun.ATTR_MAPPED_ADDRESS).endpoint != mapped:
            return StunResult(NatType.SYMMETRIC, mapped)

        # Test III
        test3 = yield self._probe(transport, changed, "Test III", change_port=True)
        if test3 is not None:
            return StunResult(NatType.RESTRICTED_CONE, mapped)
        return StunResult(NatType.PORT_RESTRICTED_CONE, mapped)

    @defer.inlineCallbacks
    def _probe(self, transport, addr, name, change_ip=False, change_port=False):
        """Run one Binding transaction

        :return: Deferred firing with the Binding response, or None if the
            server did not answer
        """
        request = Message.encode(stun.MessageType.BINDING_REQUEST)
        if change_ip or change_port:
            request.add_attr(attributes.ChangeRequest, change_ip, change_port)
        transaction = StunTransaction(request, addr, self.timeout,
                                      self.rto, self.rc, name=name)
        try:
            response = yield transaction.run(transport, self.reactor)
        except TransportError as e:
            raise TransportError("{} to {}:{} failed: {}".format(name, addr[0], addr[1], e))

        if response is None or response.msg_type is stun.MessageType.BINDING_RESPONSE:
            return response
        error_code = response.get_attr(stun.ATTR_ERROR_CODE)
        raise TransactionError("{} to {}:{} got {}: {}".format(
            name, addr[0], addr[1], response.msg_type.name,
            repr(error_code) if error_code else "no ERROR-CODE"), response)
