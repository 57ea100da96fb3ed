import collections
import logging
import os
import socket
import struct

from classicstun import stun


logger = logging.getLogger(__name__)


class MalformedMessage(Exception):
    """Raised when data can not be decoded as a STUN message
    """


class Endpoint(collections.namedtuple('Endpoint', 'host port')):
    __slots__ = ()

    def __str__(self):
        return "{}:{}".format(self.host, self.port)


class Message(bytearray):
    """STUN message structure
    :see: http://tools.ietf.org/html/rfc3489#section-11.1
    """

    _struct = struct.Struct('>2H16s')
    _ATTR_TYPE_CLS = {}

    _padding = bytes

    def __init__(self, data, msg_type, transaction_id):
        bytearray.__init__(self, data)
        self.msg_type = msg_type
        self.transaction_id = transaction_id
        self._attributes = []

    @classmethod
    def encode(cls, msg_type, transaction_id=None):
        transaction_id = transaction_id or os.urandom(16)
        if len(transaction_id) != 16:
            raise ValueError("Transaction ID must be 16 bytes, got {}".format(
                len(transaction_id)))
        header = cls._struct.pack(msg_type.value, 0, transaction_id)
        return cls(header, msg_type, transaction_id)

    def add_attr(self, attr_cls, *args, **kwargs):
        attr = attr_cls.encode(self, *args, **kwargs)
        self.extend(Attribute.struct.pack(attr.type, len(attr)))
        self.extend(attr)
        self.extend(self._padding(attr.padding))
        self._attributes.append(attr)
        #update length
        self.length = len(self) - self._struct.size
        return attr

    def get_attr(self, *attr_types):
        for attr in self._attributes:
            if attr.type in attr_types:
                return attr

    @property
    def attributes(self):
        return tuple(self._attributes)

    @classmethod
    def decode(cls, data):
        """
        :see: http://tools.ietf.org/html/rfc3489#section-11.1
        :raises MalformedMessage: if data is not a well formed STUN message
        """
        data = bytes(data)
        if len(data) < cls._struct.size:
            raise MalformedMessage(
                "Message shorter than the {} byte header ({} bytes)".format(
                    cls._struct.size, len(data)))
        msg_type, msg_length, transaction_id = cls._struct.unpack_from(data)
        if msg_type >> 14:
            raise MalformedMessage("STUN message MUST start with 0b00")
        try:
            msg_type = stun.MessageType.lookupByValue(msg_type)
        except ValueError:
            raise MalformedMessage("Unknown message type {:#06x}".format(msg_type))
        end = cls._struct.size + msg_length
        if end > len(data):
            raise MalformedMessage(
                "Attribute length {} exceeds the {} remaining bytes".format(
                    msg_length, len(data) - cls._struct.size))

        msg = cls(data[:end], msg_type, transaction_id)
        offset = cls._struct.size
        while offset < end:
            if offset + Attribute.struct.size > end:
                raise MalformedMessage("Truncated attribute header at offset {}".format(offset))
            attr_type, attr_length = Attribute.struct.unpack_from(data, offset)
            offset += Attribute.struct.size
            if offset + attr_length > end:
                raise MalformedMessage(
                    "Attribute {} length {} runs past the end of the message".format(
                        cls.attr_name(attr_type), attr_length))
            attr_cls = cls._ATTR_TYPE_CLS.get(attr_type)
            if attr_cls:
                msg._attributes.append(attr_cls.decode(data, offset, attr_length))
            else:
                logger.debug("Skipping unknown attribute %#06x (%d bytes)",
                             attr_type, attr_length)
            offset += attr_length + Attribute.padding_for(attr_length)

        if (msg_type is stun.MessageType.BINDING_RESPONSE
                and not msg.get_attr(stun.ATTR_MAPPED_ADDRESS)):
            raise MalformedMessage("Binding response without MAPPED-ADDRESS")
        return msg

    @classmethod
    def add_attr_cls(cls, attr_cls):
        """Decorator to add a Stun Attribute as an recognized attribute type
        """
        assert not cls._ATTR_TYPE_CLS.get(attr_cls.type, False), \
            "Duplicate definition for {:#06x}".format(attr_cls.type)
        cls._ATTR_TYPE_CLS[attr_cls.type] = attr_cls
        return attr_cls

    @property
    def length(self):
        return len(self) - self._struct.size

    @length.setter
    def length(self, value):
        struct.pack_into('>H', self, 2, value)

    @classmethod
    def attr_name(cls, attr_type):
        """Get the readable name of an attribute type, if known
        """
        attr_cls = cls._ATTR_TYPE_CLS.get(attr_type)
        return attr_cls.__name__ if attr_cls else "{:#06x}".format(attr_type)

    def create_response(self, msg_type):
        return self.encode(msg_type, self.transaction_id)

    def __repr__(self):
        return ("{}(type={}, length={}, transaction_id={}, attributes={})".format(
                    type(self).__name__, self.msg_type.name, self.length,
                    self.transaction_id.hex(), self._attributes))

    def format(self):
        string = '\n'.join([
            "{0.__class__.__name__}",
            "    type:           {0.msg_type.name} ({1:#06x})",
            "    length:         {0.length}",
            "    transaction-id: {2}",
            "    attributes:", ""
            ]).format(self, self.msg_type.value, self.transaction_id.hex())
        string += '\n'.join(["    \t" + repr(attr) for attr in self._attributes])
        return string


class Attribute(bytes):
    """STUN message attribute structure
    :see: http://tools.ietf.org/html/rfc3489#section-11.2
    """
    struct = struct.Struct('>2H')

    def __new__(cls, data, *args, **kwargs):
        return bytes.__new__(cls, data)

    @classmethod
    def decode(cls, data, offset, length):
        return cls(data[offset:offset + length])

    @classmethod
    def encode(cls, msg, data):
        return cls(data)

    @staticmethod
    def padding_for(length):
        return (4 - (length % 4)) % 4

    @property
    def padding(self):
        """Calculate number of padding bytes required to align to 4 byte boundary
        """
        return self.padding_for(len(self))


class Address(Attribute):
    """Base class for all the address STUN attributes
    :see: http://tools.ietf.org/html/rfc3489#section-11.2.1
    """
    struct = struct.Struct('>xBH4s')

    FAMILY_IPv4 = 0x01

    def __init__(self, data, family, port, address):
        self.family = family
        self.port = port
        self.address = address

    @property
    def endpoint(self):
        return Endpoint(self.address, self.port)

    @classmethod
    def decode(cls, data, offset, length):
        if length != cls.struct.size:
            raise MalformedMessage("{} value must be {} bytes, got {}".format(
                cls.__name__, cls.struct.size, length))
        family, port, packed_ip = cls.struct.unpack_from(data, offset)
        if family != cls.FAMILY_IPv4:
            raise MalformedMessage("{} has unsupported address family {:#04x}".format(
                cls.__name__, family))
        address = socket.inet_ntop(socket.AF_INET, packed_ip)
        return cls(data[offset:offset + length], family, port, address)

    @classmethod
    def encode(cls, msg, family, port, address):
        if family != cls.FAMILY_IPv4:
            raise ValueError("Unsupported address family {:#04x}".format(family))
        try:
            packed_ip = socket.inet_pton(socket.AF_INET, address)
        except OSError:
            raise ValueError("Not an IPv4 address: {!r}".format(address))
        data = cls.struct.pack(family, port, packed_ip)
        return cls(data, family, port, address)

    def __repr__(self):
        return "{}(family={:#04x}, port={}, address={!r})".format(
            type(self).__name__, self.family, self.port, self.address)


# Decorator shortcut for adding known attribute classes
attribute = Message.add_attr_cls
