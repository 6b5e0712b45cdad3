from .database_session_manager import DatabaseSessionManager
