"""
pki_bootstrap — install an externally issued CA into a configuration-management server.

Validates a PEM certificate bundle, its private key and an optional CRL chain
against each other, then writes them to the CA paths named by the host's
puppet.conf. Also revokes certificates through the CA service over HTTPS.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"
