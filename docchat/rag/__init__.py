from .routes import router as rag_router

__all__ = ["rag_router"]
