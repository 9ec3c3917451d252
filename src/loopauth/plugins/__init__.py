"""Concrete providers and token-exchange collaborators.

* :mod:`loopauth.plugins.interactive` -- the interactive provider and the
  loopback browser web UI.
* :mod:`loopauth.plugins.msal_exchange` -- token exchange through MSAL.
* :mod:`loopauth.plugins.oauth2_pkce` -- token exchange through a plain
  OAuth2 authorization-code + PKCE request over httpx.
"""
