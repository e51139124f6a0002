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
from . import clf                                                  # noqa: F401
from . import tag                                                  # noqa: F401
from .frontend import ContactlessFrontend                          # noqa: F401

import logging
logging.getLogger(__name__).addHandler(logging.NullHandler())
logging.getLogger(__name__).setLevel(logging.INFO)

# METADATA ####################################################################

__version__ = "0.1.0"

__title__ = "aiopn532"
__description__ = "Asyncio driver for the NXP PN532 contactless controller."
__uri__ = "https://github.com/aiopn532/aiopn532"

__author__ = "The aiopn532 authors"
__email__ = "aiopn532@users.noreply.github.com"

__license__ = "EUPL"
__copyright__ = "Copyright (c) 2026 The aiopn532 authors"

###############################################################################
