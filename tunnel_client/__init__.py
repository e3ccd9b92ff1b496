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
"""
tunnel_client is a Python client for a dynamic-DNS tunnel service. It subscribes a named box to the service,
authenticates every following call with the issued token, and obtains a certificate for the box's domains through the
ACME DNS-01 challenge, publishing the challenge values through the tunnel service itself.
"""
import logging
import pathlib

import josepy as jose
import requests
from acme import errors as acme_errors

from . import ca
from . import errors
from . import tools
from . import types


# Constants and Variables
CERTIFICATE_FILE = 'certificate.pem'
PRIVATE_KEY_FILE = 'privatekey.pem'
SUCCESS_STATUS = 200
STAGED_SUFFIX = '.tmp'
REDACTED_TOKEN = '<token>'
ACME_ERRORS = (acme_errors.Error, jose.errors.Error, requests.exceptions.RequestException)
logger = logging.getLogger(__name__)
__pdoc__ = {"tests": False}    # Excludes 'tests' submodule from documentation


def endpoint(path: str, with_token: bool, response_type=None):
    """
    Builds a method binding one tunnel service endpoint to the generic call executor.

    Args:
        path (str): The endpoint path.
        with_token (bool): Whether the endpoint requires the client's token.
        response_type: A class with a `from_json()` classmethod to decode the body with. `None` for endpoints
            that answer with an empty body.

    Returns:
        function: A method taking the ordered `(name, value)` parameter list.
    """
    def call(self, params: list):
        return self._call(path, with_token, params, response_type)

    call.__name__ = f"call_{path}"
    call.__doc__ = f"Calls the `{path}` endpoint."
    return call


class TunnelClient:
    """
    A client identity for the tunnel service: the service URL and, once subscribed, the issued token.
    """

    def __init__(self, tunnel_url: str, token: str = None, timeout: float = None, session=None):
        """
        Args:
            tunnel_url (str): The tunnel service base URL.
            token (str): A token previously issued by `subscribe()`.
            timeout (float): Seconds to wait on the tunnel service before giving up. `None` waits indefinitely.
            session (requests.Session): The HTTP session to send requests with. A new session is created if omitted.

        Examples:
            >>> import tunnel_client
            >>> client = tunnel_client.TunnelClient("https://knilxof.org:4443")
        """
        self._tunnel_url = tunnel_url.rstrip('/')
        self._token = token
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

    @property
    def tunnel_url(self) -> str:
        """The tunnel service base URL."""
        return self._tunnel_url

    @property
    def token(self) -> str:
        """The token issued by the tunnel service, or `None` before subscription."""
        return self._token

    def _call(self, path: str, with_token: bool, params: list, response_type=None):
        """
        Sends one GET request to a tunnel service endpoint and classifies the outcome.

        Returns:
            The decoded `response_type` object, or `None` when no `response_type` is given.

        Raises:
            tunnel_client.errors.MissingToken: When the endpoint requires a token and none is held.
            tunnel_client.errors.TransportFailure: When the request could not be completed.
            tunnel_client.errors.RejectedRequest: When the service answers with a status other than 200.
            tunnel_client.errors.MalformedResponse: When the body cannot be decoded into `response_type`.
        """
        if with_token and self._token is None:
            logger.error("No token available for '%s'!", path)
            raise errors.MissingToken(path)

        url = tools.build_url(self._tunnel_url, path, params, token=self._token, with_token=with_token)
        logger.debug("Calling tunnel endpoint '%s'", path)

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as err:
            description = self._redact(str(err))
            logger.error("Request to '%s' failed: %s", path, description)
            raise errors.TransportFailure(path, err, description) from err

        if response.status_code != SUCCESS_STATUS:
            logger.error("Request to '%s' rejected with status %s", path, response.status_code)
            raise errors.RejectedRequest(path, response.status_code)

        if response_type is None:
            return None

        try:
            return response_type.from_json(response.json())
        except (ValueError, TypeError, jose.errors.DeserializationError) as err:
            raise errors.MalformedResponse(path, err) from err

    def _redact(self, text: str) -> str:
        """Masks the held token, raw or URL encoded, in text that may echo the request URL."""
        if not self._token:
            return text

        for secret in (self._token, tools.url_param(self._token)):
            text = text.replace(secret, REDACTED_TOKEN)
        return text

    _call_subscribe = endpoint("subscribe", False, types.NameAndToken)
    _call_unsubscribe = endpoint("unsubscribe", True)
    _call_register = endpoint("register", True)
    _call_dnsconfig = endpoint("dnsconfig", True)
    _call_info = endpoint("info", True, types.ServerInfo)
    _call_ping = endpoint("ping", True, types.Discovered)
    _call_adddiscovery = endpoint("adddiscovery", True)
    # Revocation is sent to the adddiscovery path
    _call_revokediscovery = endpoint("adddiscovery", True)
    _call_setemail = endpoint("setemail", True)
    _call_revokeemail = endpoint("revokeemail", True)

    def subscribe(self, name: str, description: str = None) -> 'TunnelClient':
        """
        Subscribes a box name to the tunnel service.

        Args:
            name (str): The box name to subscribe.
            description (str): An optional human readable description.

        Returns:
            tunnel_client.TunnelClient: A new client carrying the issued token. This object is left unchanged.

        Raises:
            tunnel_client.errors.SubscriptionUnavailable: When no token could be obtained. The underlying error is
                available as its `cause`.

        Examples:
            >>> subscribed = client.subscribe("mybox", description="Living room box")
            >>> subscribed.token
            'c1b0b3e6-...'
        """
        try:
            name_and_token = self._call_subscribe([("name", name), ("desc", description)])
        except errors.TunnelClientError as err:
            raise errors.SubscriptionUnavailable(name, err) from err

        return TunnelClient(self._tunnel_url, token=name_and_token.token, timeout=self.timeout, session=self.session)

    def unsubscribe(self) -> None:
        """Releases the subscribed name."""
        return self._call_unsubscribe([])

    def register(self, local_ip: str) -> None:
        """Registers the box's local IP address with the tunnel service."""
        return self._call_register([("local_ip", local_ip)])

    def dnsconfig(self, challenge: str) -> None:
        """
        Asks the tunnel service to publish a DNS-01 challenge value as the TXT record of the box's domains.

        Args:
            challenge (str): The DNS-01 validation value.
        """
        return self._call_dnsconfig([("challenge", challenge)])

    def info(self) -> types.ServerInfo:
        """Returns what the tunnel service knows about this box."""
        return self._call_info([])

    def ping(self) -> types.Discovered:
        """Returns the boxes discovered behind the same public IP address."""
        return self._call_ping([])

    def adddiscovery(self, disco: str) -> None:
        """Publishes a discovery payload for this box."""
        return self._call_adddiscovery([("disco", disco)])

    def revokediscovery(self, disco: str) -> None:
        """Withdraws a discovery payload for this box."""
        return self._call_revokediscovery([("disco", disco)])

    def setemail(self, email: str) -> None:
        """Attaches a contact email address to this box."""
        return self._call_setemail([("email", email)])

    def revokeemail(self, email: str) -> None:
        """Detaches a contact email address from this box."""
        return self._call_revokeemail([("email", email)])

    def lets_encrypt(self, domain: str, name: str, path: str, directory: ca.AcmeDirectory = None) -> None:
        """
        Obtains a certificate for the box's remote and local domains using the DNS-01 challenge, and saves the
        certificate chain and private key under `path`. Each domain is validated in turn; the certificate is only
        requested once both are valid. Any failure aborts the whole issuance, and challenge values already
        published for earlier domains are left in place.

        Args:
            domain (str): The root domain served by the tunnel service.
            name (str): The subscribed box name.
            path (str): An existing directory to save `certificate.pem` and `privatekey.pem` to.
            directory (tunnel_client.ca.AcmeDirectory): The CA to use. Defaults to Let's Encrypt.

        Raises:
            tunnel_client.errors.MissingToken: When this client holds no token.
            tunnel_client.errors.InvalidDomain: When the derived domains are not valid hostnames.
            tunnel_client.errors.InvalidPath: When `path` is not an existing directory.
            tunnel_client.errors.NoChallengeAvailable: When the CA offers no DNS-01 challenge for a domain.
            tunnel_client.errors.AcmeProtocolError: When any CA step fails.
            tunnel_client.errors.TunnelClientError: When publishing a challenge through `dnsconfig()` fails.

        Examples:
            >>> subscribed.lets_encrypt("knilxof.org", "mybox", "/etc/mybox/certs")
        """
        if self._token is None:
            logger.error("No token available to retrieve the certificate for %s", domain)
            raise errors.MissingToken("lets_encrypt")

        remote_domain, local_domain = tools.domain_pair(name, domain)
        domains = [remote_domain, local_domain]

        dir_path = pathlib.Path(path).absolute()
        if not dir_path.is_dir():
            raise errors.InvalidPath(f"Directory at '{path}' does not exist.")

        directory = directory if directory is not None else ca.AcmeDirectory.lets_encrypt()
        account = self._acme_step("register", directory.register)

        for fqdn in domains:
            authorization = self._acme_step("authorization", account.authorization, fqdn)
            dns_challenge = self._acme_step("challenge", authorization.dns_challenge)
            if dns_challenge is None:
                logger.error("No DNS-01 challenge offered for %s", fqdn)
                raise errors.NoChallengeAvailable(fqdn)

            signature = self._acme_step("signature", dns_challenge.signature)
            self.dnsconfig(signature)

            self._acme_step("validate", dns_challenge.validate)
            logger.info("DNS challenge validated for %s", fqdn)

        certificate = self._acme_step("sign", account.sign_certificate, domains)

        self._save_artifacts(dir_path, certificate)
        logger.info("Certificate and private key for %s saved.", domain)

    @staticmethod
    def _save_artifacts(dir_path: pathlib.Path, certificate: ca.SignedCertificate) -> None:
        """
        Writes the certificate chain and private key under staged names, then moves both into place. A failed write
        removes the staged files and leaves no artifact behind.
        """
        staged = []
        try:
            cert_tmp = dir_path.joinpath(CERTIFICATE_FILE + STAGED_SUFFIX)
            with open(cert_tmp, 'w', encoding='utf-8') as certificate_file:
                staged.append(cert_tmp)
                certificate_file.write(certificate.fullchain_pem)
            key_tmp = dir_path.joinpath(PRIVATE_KEY_FILE + STAGED_SUFFIX)
            with open(key_tmp, 'wb') as private_key_file:
                staged.append(key_tmp)
                private_key_file.write(certificate.private_key_pem)
        except OSError as err:
            logger.error("Failed to save certificate artifacts to '%s': %s", dir_path, err)
            for tmp_path in staged:
                tmp_path.unlink(missing_ok=True)
            raise

        cert_tmp.replace(dir_path.joinpath(CERTIFICATE_FILE))
        key_tmp.replace(dir_path.joinpath(PRIVATE_KEY_FILE))

    @staticmethod
    def _acme_step(step: str, func, *args):
        """Runs one ACME collaborator call, wrapping its failures in `AcmeProtocolError`."""
        try:
            return func(*args)
        except ACME_ERRORS as err:
            logger.error("ACME step '%s' failed: %r", step, err)
            raise errors.AcmeProtocolError(step, err) from err
