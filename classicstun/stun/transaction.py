from twisted.internet import defer
from classicstun.stun.agent import Message, MalformedMessage
import logging


logger = logging.getLogger(__name__)


class TransactionError(Exception):
    pass


class StunTransaction(object):
    """One request and its correlated response
    :see: http://tools.ietf.org/html/rfc3489#section-9.3
    """
    def __init__(self, request, addr, timeout, rto=None, rc=7, name="Binding"):
        """
        :param request: encoded request, its transaction ID set by the caller
        :param timeout: seconds to wait for the response, retransmissions included
        :param rto: Retransmission TimeOut (initial value), None to send only once
        :param rc: Retransmission count, maximum number of requests to send
        """
        self.transaction_id = request.transaction_id
        self.request = request
        self.addr = addr
        self.timeout = timeout
        self.rto = rto
        self.rc = rc
        self.name = name
        self.sent = 0

    def send(self, transport):
        logger.info("%s Sending request to %s:%d", self, *self.addr)
        logger.debug(self.request.format())
        transport.send_to(self.request, self.addr)
        self.sent += 1

    @defer.inlineCallbacks
    def run(self, transport, clock):
        """Send the request and wait for its response

        :return: Deferred firing with the response :class:`Message`, or None
            if no response arrived in time. Transport failures errback.
        """
        deadline = clock.seconds() + self.timeout
        rto = self.rto
        self.send(transport)
        next_send = deadline
        if rto and self.sent < self.rc:
            next_send = clock.seconds() + rto

        while True:
            now = clock.seconds()
            if now >= deadline:
                logger.info("%s Timed out after %gs", self, self.timeout)
                return None
            if now >= next_send:
                self.send(transport)
                rto *= 2
                next_send = now + rto if self.sent < self.rc else deadline

            try:
                datagram = yield transport.receive(min(deadline, next_send) - now)
            except defer.TimeoutError:
                continue

            try:
                response = Message.decode(datagram)
            except MalformedMessage as e:
                logger.warning("%s Discarding malformed datagram: %s", self, e)
                continue
            if response.transaction_id != self.transaction_id:
                logger.debug("%s Discarding response to transaction %s",
                             self, response.transaction_id.hex())
                continue

            logger.info("%s Received %s", self, response.msg_type.name)
            logger.debug(response.format())
            return response

    def __str__(self):
        return "{}[{}]".format(self.name, self.transaction_id.hex()[:8])
