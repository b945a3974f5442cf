from habitly.exceptions import HabitlyError


class RelationshipError(HabitlyError):
    """Base class for relationship state and authorization errors."""


class Conflict(RelationshipError):
    """An active relationship already exists for the pair."""
    code = 'CONFLICT'
    status_code = 409
    default_message = 'A relationship between these users already exists.'


class AlreadyFriends(Conflict):
    code = 'ALREADY_FRIENDS'
    default_message = 'These users are already friends.'


class RequestAlreadySent(Conflict):
    code = 'REQUEST_ALREADY_SENT'
    default_message = 'A friend request was already sent and is awaiting confirmation.'


class InvalidTransition(Conflict):
    """The requested status change is not allowed from the current status."""
    code = 'INVALID_TRANSITION'
    default_message = 'This status change is not allowed.'


class NotFound(RelationshipError):
    code = 'NOT_FOUND'
    status_code = 404
    default_message = 'Relationship not found.'


class Forbidden(RelationshipError):
    code = 'FORBIDDEN'
    status_code = 403
    default_message = 'You are not allowed to modify this relationship.'


class Mismatch(RelationshipError):
    code = 'MISMATCH'
    status_code = 400
    default_message = 'The counterparty does not match this relationship.'
