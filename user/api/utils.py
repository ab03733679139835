import secrets
import string

from rest_framework.response import Response
from rest_framework import status


PUBLIC_ID_PREFIXES = {
    'student': 'STU',
    'group': 'GRP',
    'course': 'CRS',
    'teacher': 'TCH',
}
PUBLIC_ID_CHARSET = string.ascii_uppercase + string.digits
PUBLIC_ID_MIN_LENGTH = 8
PUBLIC_ID_MAX_LENGTH = 10
PUBLIC_ID_MAX_RETRIES = 5


def success_response(data=None, message=None, status_code=status.HTTP_200_OK):
    response_data = {'success': True}
    if message:
        response_data['message'] = message
    if data is not None:
        response_data['data'] = data
    return Response(response_data, status=status_code)


def error_response(message, errors=None, status_code=status.HTTP_400_BAD_REQUEST):
    response_data = {
        'success': False,
        'message': message
    }
    if errors:
        response_data['errors'] = errors
    return Response(response_data, status=status_code)


def generate_public_id(entity_type: str, length: int = PUBLIC_ID_MIN_LENGTH) -> str:
    """
    Build an opaque identifier such as ``STU-7K2Q9X1A``.
    """
    if entity_type not in PUBLIC_ID_PREFIXES:
        raise ValueError(f'Unknown entity type: {entity_type}')
    length = max(PUBLIC_ID_MIN_LENGTH, min(length, PUBLIC_ID_MAX_LENGTH))
    suffix = ''.join(secrets.choice(PUBLIC_ID_CHARSET) for _ in range(length))
    return f'{PUBLIC_ID_PREFIXES[entity_type]}-{suffix}'


def generate_unique_public_id(entity_type: str, is_unique) -> str:
    """
    Generate a public id, retrying while ``is_unique(candidate)`` is false.
    Each retry uses a longer suffix, capped at PUBLIC_ID_MAX_LENGTH.
    """
    for attempt in range(PUBLIC_ID_MAX_RETRIES):
        candidate = generate_public_id(entity_type, PUBLIC_ID_MIN_LENGTH + attempt)
        if is_unique(candidate):
            return candidate
    raise RuntimeError(
        f'Could not generate a unique public id for {entity_type} '
        f'after {PUBLIC_ID_MAX_RETRIES} attempts'
    )
