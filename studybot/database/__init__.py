from studybot.database.session import Database

__all__ = ["Database"]
