# Copyright 2025 Jared Hendrickson
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

import logging
import sys

import tunnel_client
from tunnel_client import ca

logging.basicConfig(level=logging.INFO)

# Create a client object to interface with the tunnel service
client = tunnel_client.TunnelClient("https://knilxof.org:4443", timeout=30)

# Subscribe our box name. The returned client carries the issued token.
try:
    box = client.subscribe("mybox", description="Example box")
except tunnel_client.errors.SubscriptionUnavailable as err:
    print(f"Could not subscribe: {err.cause}")
    sys.exit(1)

# Tell the tunnel service where the box lives on the local network
box.register("192.168.1.20")
print(box.info().public_ip)

# Request a certificate for mybox.box.knilxof.org and local.mybox.box.knilxof.org from the Let's Encrypt staging
# environment. The certificate and private key are saved to the current directory.
staging = ca.AcmeDirectory(url=ca.LETS_ENCRYPT_STAGING_DIRECTORY)
try:
    box.lets_encrypt("knilxof.org", "mybox", ".", directory=staging)
except tunnel_client.errors.TunnelClientError as err:
    print(f"Failed to issue certificate: {err.message}")
    sys.exit(1)
