"""Address directory HTTP API."""
from __future__ import annotations

import logging
from typing import Any

import quart
from quart import request

from syrja.directory.exceptions import AddressTakenError
from syrja.directory.exceptions import DirectoryStorageError
from syrja.directory.storage import AddressStorage

logger = logging.getLogger(__name__)

routes_blueprint = quart.Blueprint('routes', __name__)


def create_app(storage: AddressStorage) -> quart.Quart:
    """Create quart app for the address directory and registers routes.

    Args:
        storage: Storage the directory claims and resolves addresses in.
            The storage is closed when the app stops serving.

    Returns:
        Quart app.
    """
    app = quart.Quart(__name__)

    app.config['storage'] = storage

    app.register_blueprint(routes_blueprint, url_prefix='')

    return app


def _error(message: str, status: int) -> tuple[dict[str, Any], int]:
    return ({'error': message}, status)


@routes_blueprint.after_app_serving
async def _shutdown() -> None:
    storage = quart.current_app.config['storage']
    await storage.close()


@routes_blueprint.route('/')
async def _home() -> tuple[str, int]:
    return ('✅ Signaling server is running', 200)


@routes_blueprint.route('/api/claim', methods=['POST'])
async def claim_handler() -> tuple[dict[str, Any], int]:
    """Route handler for `POST /api/claim`.

    The request body must be a JSON object with string `address` and
    `inviteCode` fields.

    Responses:

    * `Status Code 201`: If the address was claimed.
    * `Status Code 400`: If `address` or `inviteCode` is missing or empty.
    * `Status Code 409`: If the address is already claimed.
    * `Status Code 500`: If the storage failed.
    """
    body = await request.get_json(force=True, silent=True)
    if not isinstance(body, dict):
        return _error('Address and inviteCode are required.', 400)

    address = body.get('address', None)
    invite_code = body.get('inviteCode', None)
    if (
        not isinstance(address, str)
        or not isinstance(invite_code, str)
        or not address
        or not invite_code
    ):
        return _error('Address and inviteCode are required.', 400)

    storage = quart.current_app.config['storage']
    try:
        await storage.claim(address, invite_code)
    except AddressTakenError:
        return _error('This address is already taken.', 409)
    except DirectoryStorageError as e:
        logger.error(f'Failed to claim address {address}: {e}')
        return _error('Database error claiming address.', 500)

    logger.info(f'Address claimed: {address}')
    return ({'success': True, 'message': 'Address claimed successfully.'}, 201)


@routes_blueprint.route('/api/resolve/<address>', methods=['GET'])
async def resolve_handler(address: str) -> tuple[dict[str, Any], int]:
    """Route handler for `GET /api/resolve/<address>`.

    Responses:

    * `Status Code 200`: JSON containing the key `inviteCode` with the
      invite code the address was claimed with.
    * `Status Code 404`: If the address has not been claimed.
    * `Status Code 500`: If the storage failed.
    """
    storage = quart.current_app.config['storage']
    try:
        invite_code = await storage.resolve(address)
    except DirectoryStorageError as e:
        logger.error(f'Failed to resolve address {address}: {e}')
        return _error('Database error resolving address.', 500)

    if invite_code is None:
        return _error('Address not found.', 404)
    return ({'success': True, 'inviteCode': invite_code}, 200)
