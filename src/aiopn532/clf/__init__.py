# -*- coding: latin-1 -*-
# -----------------------------------------------------------------------------
# Copyright 2026 The aiopn532 authors
#
# Licensed under the EUPL, Version 1.1 or - as soon they
# will be approved by the European Commission - subsequent
# versions of the EUPL (the "Licence");
# You may not use this work except in compliance with the
# Licence.
# You may obtain a copy of the Licence at:
#
# https://joinup.ec.europa.eu/software/page/eupl
#
# Unless required by applicable law or agreed to in
# writing, software distributed under the Licence is
# distributed on an "AS IS" basis,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either
# express or implied.
# See the Licence for the specific language governing
# permissions and limitations under the Licence.
# -----------------------------------------------------------------------------
"""Contactless frontend layer for the PN532 host interface: frame
codec, stream decoder, transports and the command/response engine.

This module holds what the submodules share, the exception hierarchy
and the :class:`RemoteTarget` that describes a discovered card.

"""


###############################################################################
#
# Targets
#
###############################################################################
class RemoteTarget(object):
    """A RemoteTarget describes a card found by the PN532. The bitrate
    and technology type is always ``'106A'`` for the passive type A
    targets that :meth:`ContactlessFrontend.scan` looks for. The
    scan response data is stored as attributes:

    * ``tg`` - the logical target number assigned by the chip
    * ``sens_res`` - the 2 byte ATQA
    * ``sel_res`` - the 1 byte SAK
    * ``sdd_res`` - the UID

    Attributes that were not set read as None.

    """
    def __init__(self, brty='106A', **kwargs):
        self.__dict__.update(kwargs)
        self.brty = brty

    def __getattr__(self, name):
        if name.startswith('__'):
            raise AttributeError(name)
        return None


###############################################################################
#
# Exceptions
#
###############################################################################
class Error(Exception):
    """Base class for exceptions specific to the contacless frontend module.

    - CommunicationError

      - TransportError
      - FrameDecodeError

        - ChecksumError

      - ProtocolError
      - TimeoutError

    """


class CommunicationError(Error):
    """Base class for communication errors.

    """


class TransportError(CommunicationError):
    """Raised when the transport failed to read or write. The
    :attr:`errno` attribute holds the error number of the underlying
    :exc:`IOError`, if any.

    """
    def __init__(self, message, errno=None):
        super(TransportError, self).__init__(message)
        self.errno = errno


class FrameDecodeError(CommunicationError):
    """Raised when received octets could not be decoded into a valid
    frame, for example a missing postamble or an unknown frame
    identifier.

    """


class ChecksumError(FrameDecodeError):
    """Raised when a frame boundary was found but either the length or
    the data checksum does not verify.

    """


class ProtocolError(CommunicationError):
    """Raised when the frame sequence violates the host protocol, for
    example a response frame that arrives before the command was
    acknowledged.

    """


class TimeoutError(CommunicationError):
    """Raised when the chip did not acknowledge or respond to a command
    in time.

    """
