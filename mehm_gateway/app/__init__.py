"""
API Gateway Service package for the mehm platform.

The gateway fronts client requests, enforcing:
- Authentication: local verification of signed bearer tokens
- Authorization: admin-only and self-or-admin rules, plus identity fields
  injected for the ownership checks done by the backends
- Forwarding: one outbound call per request to the user or mehm service,
  with the backend response relayed verbatim

Structure:
- app.main: FastAPI app and route wiring.
- app.auth: Token authenticator and the Identity it yields.
- app.adapters: HTTP client for the upstream services.
- app.domain: Route table, input validation, dispatcher and error responder.
"""
