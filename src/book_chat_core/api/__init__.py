from book_chat_core.api.app import create_app

__all__ = ["create_app"]
