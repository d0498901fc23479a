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

import attr


@attr.s(frozen=True, slots=True, auto_attribs=True)
class Lease:
    """What a holder needs to give back a lock or a semaphore slot.

    Parameters:
      name(str): The resource name the lease was taken on.
      token(str): The unique token identifying this acquisition.
      ttl_ms(int): The lease duration (lock) or lock timeout (semaphore).
      acquired_at_ms(int): When the lease was granted, according to the
        acquiring host's clock.
    """

    name: str
    token: str
    ttl_ms: int
    acquired_at_ms: int

    @property
    def expires_at_ms(self) -> int:
        return self.acquired_at_ms + self.ttl_ms
