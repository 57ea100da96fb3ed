from twisted.internet import defer, task
from twisted.trial import unittest
from zope.interface import implementer
from zope.interface.verify import verifyObject

from classicstun import stun
from classicstun.stun import Message, MessageType, Endpoint
from classicstun.stun.transaction import StunTransaction
from classicstun.stun.transport import ITransport, TransportError


SERVER = ('198.51.100.1', 3478)


@implementer(ITransport)
class FakeTransport(object):
    def __init__(self, clock):
        self.clock = clock
        self.sent = []
        self.timeouts = []
        self._pending = None

    def bind(self):
        return Endpoint('10.0.0.2', 5000)

    def send_to(self, data, addr):
        self.sent.append((bytes(data), addr))

    def receive(self, timeout):
        self.timeouts.append(timeout)
        d = defer.Deferred(self._cancel)
        self._pending = d
        d.addTimeout(timeout, self.clock)
        return d

    def _cancel(self, d):
        self._pending = None

    def deliver(self, data):
        d, self._pending = self._pending, None
        d.callback(bytes(data))

    def fail(self, exc):
        d, self._pending = self._pending, None
        d.errback(exc)

    def close(self):
        pass


def binding_response(request, endpoint=('203.0.113.7', 40000)):
    response = request.create_response(MessageType.BINDING_RESPONSE)
    response.add_attr(stun.MappedAddress, stun.Address.FAMILY_IPv4, endpoint[1], endpoint[0])
    return response


class StunTransactionTest(unittest.SynchronousTestCase):
    def setUp(self):
        self.clock = task.Clock()
        self.transport = FakeTransport(self.clock)
        self.request = Message.encode(MessageType.BINDING_REQUEST)

    def run_transaction(self, timeout=2, **kwargs):
        transaction = StunTransaction(self.request, SERVER, timeout, **kwargs)
        return transaction.run(self.transport, self.clock)

    def test_fake_transport(self):
        verifyObject(ITransport, self.transport)

    def test_response(self):
        d = self.run_transaction()
        self.assertEqual(self.transport.sent, [(bytes(self.request), SERVER)])

        response = binding_response(self.request)
        self.transport.deliver(response)

        result = self.successResultOf(d)
        self.assertEqual(result, response)
        self.assertEqual(result.get_attr(stun.ATTR_MAPPED_ADDRESS).endpoint,
                         ('203.0.113.7', 40000))

    def test_timeout(self):
        d = self.run_transaction(timeout=2)
        self.clock.advance(1.5)
        self.assertNoResult(d)
        self.clock.advance(0.5)
        self.assertIsNone(self.successResultOf(d))
        self.assertEqual(len(self.transport.sent), 1)

    def test_foreign_transaction_does_not_extend_wait(self):
        d = self.run_transaction(timeout=2)
        self.clock.advance(1.5)

        other = Message.encode(MessageType.BINDING_REQUEST)
        self.transport.deliver(binding_response(other))
        self.assertNoResult(d)
        self.assertEqual(self.transport.timeouts, [2, 0.5])

        self.clock.advance(0.5)
        self.assertIsNone(self.successResultOf(d))

    def test_malformed_datagram_discarded(self):
        d = self.run_transaction()
        self.transport.deliver(b'not a stun message')
        self.assertNoResult(d)

        response = binding_response(self.request)
        self.transport.deliver(response)
        self.assertEqual(self.successResultOf(d), response)

    def test_send_failure(self):
        def send_to(data, addr):
            raise TransportError("Network is unreachable")
        self.transport.send_to = send_to

        d = self.run_transaction()
        self.failureResultOf(d, TransportError)

    def test_receive_failure(self):
        d = self.run_transaction()
        self.transport.fail(TransportError("Transport closed"))
        self.failureResultOf(d, TransportError)

    def test_single_send_without_rto(self):
        d = self.run_transaction(timeout=10)
        self.clock.advance(10)
        self.assertIsNone(self.successResultOf(d))
        self.assertEqual(len(self.transport.sent), 1)

    def test_retransmission(self):
        d = self.run_transaction(timeout=10, rto=0.5, rc=3)
        self.assertEqual(len(self.transport.sent), 1)
        self.clock.advance(0.5)
        self.assertEqual(len(self.transport.sent), 2)
        self.clock.advance(1)
        self.assertEqual(len(self.transport.sent), 3)
        self.clock.advance(2)
        self.assertEqual(len(self.transport.sent), 3)

        self.assertNoResult(d)
        self.clock.advance(6.5)
        self.assertIsNone(self.successResultOf(d))
        self.assertEqual(set(self.transport.sent), {(bytes(self.request), SERVER)})

    def test_retransmission_answered(self):
        d = self.run_transaction(timeout=10, rto=0.5, rc=7)
        self.clock.advance(0.5)
        self.assertEqual(len(self.transport.sent), 2)

        response = binding_response(self.request)
        self.transport.deliver(response)
        self.assertEqual(self.successResultOf(d), response)
