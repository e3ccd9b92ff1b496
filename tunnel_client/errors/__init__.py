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
"""Custom exception classes for tunnel_client."""


class TunnelClientError(Exception):
    """Base class for every error raised by tunnel_client."""
    def __init__(self, message: str, operation: str = None) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation


class MissingToken(TunnelClientError):
    """Error occurs when a token-gated operation is attempted without a token. No request is sent."""
    def __init__(self, operation: str) -> None:
        super().__init__(f"No token available for '{operation}'.", operation=operation)


class NoChallengeAvailable(TunnelClientError):
    """Error occurs when the ACME server does not offer the DNS-01 challenge for a domain"""
    def __init__(self, domain: str) -> None:
        super().__init__(f"No DNS-01 challenge offered for '{domain}'.", operation="lets_encrypt")
        self.domain = domain


class RejectedRequest(TunnelClientError):
    """Error occurs when the tunnel service answers with anything other than HTTP 200"""
    def __init__(self, operation: str, status_code: int) -> None:
        super().__init__(f"Request to '{operation}' rejected with status {status_code}.", operation=operation)
        self.status_code = status_code


class TransportFailure(TunnelClientError):
    """Error occurs when the request to the tunnel service could not be completed"""
    def __init__(self, operation: str, cause: Exception, description: str = None) -> None:
        description = description if description is not None else str(cause)
        super().__init__(f"Request to '{operation}' failed: {description}", operation=operation)
        self.cause = cause


class MalformedResponse(TunnelClientError):
    """Error occurs when a successful response body cannot be decoded into the expected type"""
    def __init__(self, operation: str, cause: Exception) -> None:
        super().__init__(f"Malformed response from '{operation}': {cause}", operation=operation)
        self.cause = cause


class AcmeProtocolError(TunnelClientError):
    """Error occurs when the ACME collaborator fails during one of the issuance steps"""
    def __init__(self, step: str, cause: Exception) -> None:
        super().__init__(f"ACME step '{step}' failed: {cause!r}", operation="lets_encrypt")
        self.step = step
        self.cause = cause


class SubscriptionUnavailable(TunnelClientError):
    """Error occurs when the tunnel service did not issue a token for a subscription"""
    def __init__(self, name: str, cause: TunnelClientError) -> None:
        super().__init__(f"Subscription for '{name}' is unavailable.", operation="subscribe")
        self.name = name
        self.cause = cause


class InvalidDomain(TunnelClientError):
    """Error occurs when a derived domain name is not an RFC2181 compliant hostname"""
    def __init__(self, message: str) -> None:
        super().__init__(message)


class InvalidPath(TunnelClientError):
    """Error occurs when a requested destination directory does not exist"""
    def __init__(self, message: str) -> None:
        super().__init__(message)
