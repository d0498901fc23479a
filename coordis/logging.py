# This file is a part of Coordis.
#
# Copyright (C) 2017,2018 WIREMIND SAS <dev@wiremind.fr>
#
# Coordis is free software; you can redistribute it and/or modify it
# under the terms of the GNU Lesser General Public License as published by
# the Free Software Foundation, either version 3 of the License, or (at
# your option) any later version.
#
# Coordis is distributed in the hope that it will be useful, but WITHOUT
# ANY WARRANTY; without even the implied warranty of MERCHANTABILITY or
# FITNESS FOR A PARTICULAR PURPOSE. See the GNU Lesser General Public
# License for more details.
#
# You should have received a copy of the GNU Lesser General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

import logging


def get_logger(module: str, name: str | type | None = None) -> logging.Logger:
    """Get a logger for the given module, optionally scoped to a class.

    Parameters:
      module(str): Usually ``__name__``.
      name(str|type): A name or a class to append to the logger name.
    """
    logger_fqn = module
    if name is not None:
        if isinstance(name, type):
            name = name.__name__
        logger_fqn += "." + name

    return logging.getLogger(logger_fqn)
