from fastapi import APIRouter

from bookreview.api.routers import auth, books, reviews

api_router = APIRouter()

api_router.include_router(auth.router)
api_router.include_router(books.router)
api_router.include_router(reviews.router)
