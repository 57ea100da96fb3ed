"""Implementation of RFC 3489 Simple Traversal of UDP Through NATs (STUN)
:see: http://tools.ietf.org/html/rfc3489
"""
from constantly import Values, ValueConstant


DEFAULT_PORT = 3478


class MessageType(Values):
    """STUN Message Types
    :see: http://tools.ietf.org/html/rfc3489#section-11.1
    """
    BINDING_REQUEST =               ValueConstant(0x0001)
    BINDING_RESPONSE =              ValueConstant(0x0101)
    BINDING_ERROR_RESPONSE =        ValueConstant(0x0111)
    SHARED_SECRET_REQUEST =         ValueConstant(0x0002)
    SHARED_SECRET_RESPONSE =        ValueConstant(0x0102)
    SHARED_SECRET_ERROR_RESPONSE =  ValueConstant(0x0112)


# STUN Attribute Registry
ATTR_MAPPED_ADDRESS =      0x0001
ATTR_RESPONSE_ADDRESS =    0x0002
ATTR_CHANGE_REQUEST =      0x0003
ATTR_SOURCE_ADDRESS =      0x0004
ATTR_CHANGED_ADDRESS =     0x0005
ATTR_USERNAME =            0x0006
ATTR_PASSWORD =            0x0007
ATTR_MESSAGE_INTEGRITY =   0x0008
ATTR_ERROR_CODE =          0x0009
ATTR_UNKNOWN_ATTRIBUTES =  0x000A
ATTR_REFLECTED_FROM =      0x000B

# CHANGE-REQUEST flags
CHANGE_IP =    0x04
CHANGE_PORT =  0x02


from classicstun.stun.agent import (Message, Attribute, Address, Endpoint,
                                    MalformedMessage)
from classicstun.stun.attributes import (MappedAddress, ChangedAddress,
                                         ChangeRequest, ErrorCode)
