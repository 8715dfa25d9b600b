from studybot.handlers.router import router

__all__ = ["router"]
