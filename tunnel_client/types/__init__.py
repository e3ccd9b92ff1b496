# Copyright 2023 Jared Hendrickson
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Typed response bodies returned by the tunnel service."""
import josepy as jose


def typed(kind: type, optional: bool = False):
    """
    Builds a field decoder that only accepts JSON values of `kind`.

    Args:
        kind (type): The Python type the JSON value must decode to.
        optional (bool): Also accept `null`.

    Returns:
        function: A decoder raising `josepy.errors.DeserializationError` for any other value.
    """
    def decoder(value):
        if value is None and optional:
            return value
        # bool is a subclass of int, but never a valid timestamp
        if not isinstance(value, kind) or isinstance(value, bool):
            raise jose.DeserializationError(f"Expected {kind.__name__}, got {type(value).__name__}")
        return value

    return decoder


class NameAndToken(jose.JSONObjectWithFields):
    """Body of a successful `subscribe` call."""
    name: str = jose.field('name', decoder=typed(str))
    token: str = jose.field('token', decoder=typed(str))


class ServerInfo(jose.JSONObjectWithFields):
    """Body of a successful `info` call."""
    public_ip: str = jose.field('public_ip', decoder=typed(str))


class DiscoveryRecord(jose.JSONObjectWithFields):
    """A single box announced on the same public IP."""
    public_ip: str = jose.field('public_ip', decoder=typed(str))
    client: str = jose.field('client', omitempty=True, decoder=typed(str, optional=True))
    message: str = jose.field('message', omitempty=True, decoder=typed(str, optional=True))
    timestamp: int = jose.field('timestamp', omitempty=True, decoder=typed(int, optional=True))


class Discovered:
    """
    Body of a successful `ping` call: the list of boxes discovered behind the caller's public IP.
    """

    def __init__(self, records: list = None) -> None:
        self.records = records if records else []

    @classmethod
    def from_json(cls, jobj) -> 'Discovered':
        """
        Decodes a JSON array of discovery records.

        Raises:
            josepy.errors.DeserializationError: When `jobj` is not a list of discovery records.
        """
        if not isinstance(jobj, list):
            raise jose.DeserializationError(f"Expected a list of discovery records, got {type(jobj).__name__}")

        return cls([DiscoveryRecord.from_json(item) for item in jobj])

    def __iter__(self):
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)
