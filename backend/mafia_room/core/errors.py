class GameError(Exception):
    """Precondition failure that is reported back to the requesting client."""

    message = "Request could not be processed"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class RoomNotFound(GameError):
    message = "Room not found"


class EmptyName(GameError):
    message = "Name must not be empty"


class NotEnoughPlayers(GameError):
    def __init__(self, minimum: int):
        super().__init__(f"At least {minimum} players are required")
        self.minimum = minimum
