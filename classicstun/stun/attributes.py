from classicstun.stun.agent import attribute, Address, Attribute, MalformedMessage
from classicstun import stun
import struct


@attribute
class MappedAddress(Address):
    """
    :see: http://tools.ietf.org/html/rfc3489#section-11.2.1
    """
    type = stun.ATTR_MAPPED_ADDRESS


@attribute
class ChangedAddress(Address):
    """Alternate address and port of the server, used for tests I(II) and III
    :see: http://tools.ietf.org/html/rfc3489#section-11.2.3
    """
    type = stun.ATTR_CHANGED_ADDRESS


@attribute
class ChangeRequest(Attribute):
    """
    :see: http://tools.ietf.org/html/rfc3489#section-11.2.4
    """
    type = stun.ATTR_CHANGE_REQUEST
    _struct = struct.Struct('>L')

    def __init__(self, data, change_ip, change_port):
        self.change_ip = change_ip
        self.change_port = change_port

    @classmethod
    def decode(cls, data, offset, length):
        if length != cls._struct.size:
            raise MalformedMessage("CHANGE-REQUEST value must be 4 bytes, got {}".format(length))
        flags, = cls._struct.unpack_from(data, offset)
        return cls(data[offset:offset + length],
                   bool(flags & stun.CHANGE_IP), bool(flags & stun.CHANGE_PORT))

    @classmethod
    def encode(cls, msg, change_ip=False, change_port=False):
        flags = 0
        if change_ip:
            flags |= stun.CHANGE_IP
        if change_port:
            flags |= stun.CHANGE_PORT
        return cls(cls._struct.pack(flags), bool(change_ip), bool(change_port))

    def __repr__(self):
        return "CHANGE-REQUEST(change_ip={}, change_port={})".format(
            self.change_ip, self.change_port)


@attribute
class ErrorCode(Attribute):
    """
    :see: http://tools.ietf.org/html/rfc3489#section-11.2.9
    """
    type = stun.ATTR_ERROR_CODE
    _struct = struct.Struct('>2x2B')

    def __init__(self, data, err_class, err_number, reason):
        self.err_class = err_class
        self.err_number = err_number
        self.code = err_class * 100 + err_number
        self.reason = reason

    @classmethod
    def decode(cls, data, offset, length):
        if length < cls._struct.size:
            raise MalformedMessage("ERROR-CODE value too short ({} bytes)".format(length))
        err_class, err_number = cls._struct.unpack_from(data, offset)
        err_class &= 0b111
        value = data[offset:offset + length]
        reason = value[cls._struct.size:].decode('utf8', 'replace')
        return cls(value, err_class, err_number, reason)

    @classmethod
    def encode(cls, msg, err_class, err_number, reason):
        value = cls._struct.pack(err_class, err_number)
        return cls(value + reason.encode('utf8'), err_class, err_number, reason)

    def __repr__(self):
        return "ERROR-CODE(code={}, reason={!r})".format(self.code, self.reason)
