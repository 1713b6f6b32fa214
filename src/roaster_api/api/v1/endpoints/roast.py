# src/roaster_api/api/v1/endpoints/roast.py
"""Metered roast endpoint."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Header
from fastapi.concurrency import run_in_threadpool

from roaster_api.api.v1.dependencies import ClientIpDep, ContextDep, SessionDep
from roaster_api.core.errors import InputValidation, Misconfiguration, RoasterError
from roaster_api.schemas.roast import RoastBody, RoastResponse
from roaster_api.services.api_keys import parse_bearer
from roaster_api.services.generation import RoastRequest
from roaster_api.services.quota import clean_requester

router = APIRouter(tags=["roast"])


@router.post("/roast", response_model=RoastResponse)
async def create_roast(
    body: RoastBody,
    context: ContextDep,
    db: SessionDep,
    client_ip: ClientIpDep,
    background_tasks: BackgroundTasks,
    authorization: Annotated[str | None, Header()] = None,
) -> RoastResponse:
    """Generate a roast, metered by API key tier or by the free allowance.

    Without an ``Authorization`` header the request counts against the free
    per-IP and per-IP-plus-requester limits. With one, the key must resolve;
    an unknown or revoked key is rejected, never treated as anonymous.

    A resolved key counts as used even when the request then fails on quota
    or generation. Background tasks only run after a successful response, so
    the error path records the use before re-raising.
    """
    if not context.generator.enabled:
        raise Misconfiguration()

    requester = clean_requester(body.requester)
    if not requester:
        raise InputValidation(
            "Send 'requester' (calling bot name).",
            hint='Example: {"requester":"ClawdClawderberg","name":"SomeMolty","message":"..."}',
        )
    name = body.name or ""
    message = body.message or ""
    if not name and not message:
        raise InputValidation("Send at least 'name' or 'message'.")

    token = parse_bearer(authorization)
    record = None
    if token is not None:
        record = context.validator.resolve(db, token, tasks=background_tasks)

    try:
        if record is None:
            context.quotas.check_anonymous(client_ip, requester, settings=context.settings)
        else:
            context.quotas.check_key(record, settings=context.settings)

        roast = await context.generator.generate(
            RoastRequest(requester=requester, name=name, message=message)
        )
    except RoasterError:
        if record is not None:
            await run_in_threadpool(context.validator.touch_last_used, record.key_hash)
        raise
    return RoastResponse(roast=roast)
