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
Thin adapter over the `acme` library exposing the handful of certificate authority steps the tunnel client needs:
account registration, per-domain DNS-01 authorization and validation, and SAN certificate signing.
"""
import datetime
import logging

import josepy as jose
from acme import challenges
from acme import client
from acme import crypto_util
from acme import errors as acme_errors
from acme import messages
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import Encoding, PrivateFormat, NoEncryption


# Constants and Variables
LETS_ENCRYPT_DIRECTORY = "https://acme-v02.api.letsencrypt.org/directory"
LETS_ENCRYPT_STAGING_DIRECTORY = "https://acme-staging-v02.api.letsencrypt.org/directory"
USER_AGENT = 'tunnel_client/1.0.0'
DEFAULT_DEADLINE = 90
logger = logging.getLogger(__name__)


def generate_rsa_key(key_size: int = 2048):
    """Generates a new RSA private key object."""
    return rsa.generate_private_key(public_exponent=65537, key_size=key_size, backend=default_backend())


def private_key_to_pem(key) -> bytes:
    """Serializes a private key object to PKCS#8 PEM bytes."""
    return key.private_bytes(
        encoding=Encoding.PEM,
        format=PrivateFormat.PKCS8,
        encryption_algorithm=NoEncryption()
    )


class SignedCertificate:
    """The artifacts produced by a successful signing step."""
    # pylint: disable=too-few-public-methods

    def __init__(self, fullchain_pem: str, private_key_pem: bytes) -> None:
        self.fullchain_pem = fullchain_pem
        self.private_key_pem = private_key_pem


class DnsChallenge:
    """A DNS-01 challenge offered by the CA for one domain."""

    def __init__(self, account: 'AcmeAccount', order: messages.OrderResource, challenge_body: messages.ChallengeBody):
        self.account = account
        self.order = order
        self.challenge_body = challenge_body
        self._response = None
        self._validation = None

    def signature(self) -> str:
        """
        Computes the value the DNS TXT record must hold for this challenge.

        Returns:
            str: The DNS-01 validation value.
        """
        if self._validation is None:
            self._response, self._validation = self.challenge_body.response_and_validation(
                self.account.acme_client.net.key
            )
        return self._validation

    def validate(self) -> None:
        """
        Tells the CA the challenge is ready and waits until its authorization is no longer pending.

        Raises:
            acme.errors.ValidationError: When the CA could not validate the challenge.
            acme.errors.TimeoutError: When the authorization is still pending at the deadline.
        """
        self.signature()
        deadline = datetime.datetime.now() + datetime.timedelta(seconds=self.account.deadline_seconds)
        self.account.acme_client.answer_challenge(self.challenge_body, self._response)
        self.order = self.account.acme_client.poll_authorizations(self.order, deadline)


class AcmeAuthorization:
    """The CA's authorization object for a single domain."""

    def __init__(self, account: 'AcmeAccount', domain: str, order: messages.OrderResource) -> None:
        self.account = account
        self.domain = domain
        self.order = order

    def dns_challenge(self) -> DnsChallenge:
        """
        Picks the DNS-01 challenge out of this domain's authorization.

        Returns:
            DnsChallenge: The DNS-01 challenge, or `None` when the CA does not offer one.
        """
        for authz in self.order.authorizations:
            if authz.body.identifier.value != self.domain:
                continue
            for challenge_body in authz.body.challenges:
                if isinstance(challenge_body.chall, challenges.DNS01):
                    return DnsChallenge(self.account, self.order, challenge_body)

        return None


class AcmeAccount:
    """A registered account at the CA."""

    def __init__(self, acme_client: client.ClientV2, registration: messages.RegistrationResource,
                 deadline_seconds: int = DEFAULT_DEADLINE) -> None:
        self.acme_client = acme_client
        self.registration = registration
        self.deadline_seconds = deadline_seconds
        self.private_key = private_key_to_pem(generate_rsa_key())

    def authorization(self, domain: str) -> AcmeAuthorization:
        """
        Requests an authorization for a single domain. This opens a single-domain order whose authorization the CA
        reuses once the domain is validated.

        Args:
            domain (str): The fully qualified domain to authorize.

        Returns:
            AcmeAuthorization: The authorization holding the domain's challenges.
        """
        csr = crypto_util.make_csr(self.private_key, [domain])
        return AcmeAuthorization(self, domain, self.acme_client.new_order(csr))

    def sign_certificate(self, domains: list) -> SignedCertificate:
        """
        Orders and finalizes a certificate listing each of `domains` as a subject alternative name.

        Args:
            domains (list): The already validated domains.

        Returns:
            SignedCertificate: The full chain and the certificate's private key.
        """
        csr = crypto_util.make_csr(self.private_key, domains)
        deadline = datetime.datetime.now() + datetime.timedelta(seconds=self.deadline_seconds)
        order = self.acme_client.new_order(csr)
        final_order = self.acme_client.poll_and_finalize(order, deadline=deadline)
        return SignedCertificate(final_order.fullchain_pem, self.private_key)


class AcmeDirectory:
    """
    Entry point to an ACME certificate authority.
    """

    def __init__(
            self,
            url: str = LETS_ENCRYPT_DIRECTORY,
            email: str = None,
            account_key: jose.JWKRSA = None,
            verify_ssl: bool = True,
            user_agent: str = USER_AGENT,
            deadline_seconds: int = DEFAULT_DEADLINE
    ):
        """
        Args:
            url (str): The ACME directory URL to interact with.
            email (str): A contact email to register the account with.
            account_key (josepy.JWKRSA): An existing account key to reuse. A new RSA2048 key is generated when omitted.
            verify_ssl (bool): Verify the SSL certificate of the ACME server when making requests.
            user_agent (str): The user agent sent to the ACME server.
            deadline_seconds (int): How long validation and signing may wait on the CA.
        """
        self.url = url
        self.email = email
        self.account_key = account_key
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent
        self.deadline_seconds = deadline_seconds

    @classmethod
    def lets_encrypt(cls, **kwargs) -> 'AcmeDirectory':
        """Returns a directory pointing at the Let's Encrypt production CA."""
        return cls(url=LETS_ENCRYPT_DIRECTORY, **kwargs)

    def register(self) -> AcmeAccount:
        """
        Registers an account at the CA, or reuses the account already bound to `account_key`. By running this method,
        you are agreeing to the ACME server's terms of use.

        Returns:
            AcmeAccount: The registered account.
        """
        if self.account_key is None:
            self.account_key = jose.JWKRSA(key=generate_rsa_key())

        net = client.ClientNetwork(self.account_key, user_agent=self.user_agent, verify_ssl=self.verify_ssl)
        directory = messages.Directory.from_json(net.get(self.url).json())
        acme_client = client.ClientV2(directory, net=net)

        registration = messages.NewRegistration.from_data(email=self.email, terms_of_service_agreed=True)
        try:
            account = acme_client.new_account(registration)
        except acme_errors.ConflictError as err:
            # The key is already registered, look the account up by its location
            logger.info("Reusing existing ACME account at %s", err.location)
            account = acme_client.query_registration(
                messages.RegistrationResource(body=registration, uri=err.location)
            )

        return AcmeAccount(acme_client, account, deadline_seconds=self.deadline_seconds)
