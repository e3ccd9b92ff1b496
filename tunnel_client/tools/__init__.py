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
"""URL and domain name tools used by the tunnel client."""
from urllib.parse import quote

import validators

from .. import errors


# Constants and Variables
BOX_LABEL = 'box'
LOCAL_LABEL = 'local'


def url_param(value: str) -> str:
    """
    Percent-encodes a single query value. Only unreserved characters are passed through.

    Args:
        value (str): The raw parameter value.

    Returns:
        str: The encoded value, safe to place after `name=` in a query string.

    Examples:
        >>> url_param("a&b=c d")
        'a%26b%3Dc%20d'
    """
    return quote(value, safe='')


def build_url(base_url: str, path: str, params: list, token: str = None, with_token: bool = False) -> str:
    """
    Builds the full query URL for a tunnel service endpoint.

    Args:
        base_url (str): The tunnel service URL, without a trailing slash.
        path (str): The endpoint path appended to `base_url`.
        params (list): Ordered `(name, value)` tuples. Tuples whose value is `None` are skipped.
        token (str): The bearer token, if any.
        with_token (bool): Append the token as the last `token` parameter when one is given.

    Returns:
        str: The URL in the form `base_url/path?p1=v1&p2=v2&token=T`.

    Examples:
        >>> build_url("https://tunnel.example.com", "register", [("local_ip", "10.0.0.2")], "T0K", True)
        'https://tunnel.example.com/register?local_ip=10.0.0.2&token=T0K'
    """
    url = f"{base_url}/{path}"
    sep = '?'

    for name, value in params:
        if value is not None:
            url += f"{sep}{name}={url_param(value)}"
            sep = '&'

    if with_token and token is not None:
        url += f"{sep}token={url_param(token)}"

    return url


def domain_pair(name: str, domain: str) -> tuple:
    """
    Derives the remote and local domains a tunnel name is certified for.

    Args:
        name (str): The tunnel name the client subscribed with.
        domain (str): The root domain served by the tunnel service.

    Returns:
        tuple: `(remote, local)` fully qualified domain names.

    Raises:
        tunnel_client.errors.InvalidDomain: When either derived name is not a valid hostname.

    Examples:
        >>> domain_pair("foo", "example.com")
        ('foo.box.example.com', 'local.foo.box.example.com')
    """
    remote = f"{name}.{BOX_LABEL}.{domain}"
    local = f"{LOCAL_LABEL}.{remote}"

    for fqdn in (remote, local):
        if not validators.domain(fqdn):
            raise errors.InvalidDomain(f"Invalid domain name '{fqdn}'. Domain name must adhere to RFC2181.")

    return remote, local
