"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse

from lossy_mint.api.models import CheckoutRequest
from lossy_mint.api.recover import router as recover_router
from lossy_mint.api.recover import secrets_match
from lossy_mint.app_logging import configure_logging
from lossy_mint.config import is_test_mint_enabled
from lossy_mint.containers import AppContainer
from lossy_mint.domain.sessions import OutputType, SessionMetadata
from lossy_mint.errors import InvalidRequest, MintingAppError, Unauthorized


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(recover_router)

    @app.exception_handler(MintingAppError)
    async def handle_app_error(request: Request, exc: MintingAppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "Request failed: %s",
                exc.message,
                extra={"path": request.url.path, "code": exc.code.value},
            )
        else:
            logger.info(
                "Request rejected: %s",
                exc.message,
                extra={"path": request.url.path, "code": exc.code.value},
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", extra={"path": request.url.path})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(exc) or type(exc).__name__},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/upload")
    async def upload(
        request: Request,
        file: UploadFile | None = File(default=None),
        output_type: str | None = Form(default=None, alias="outputType"),
    ) -> dict[str, object]:
        """Pin buyer media to IPFS."""
        state_container: AppContainer = request.app.state.container
        if file is None:
            raise InvalidRequest("No file provided")
        limit = state_container.upload_service.max_upload_bytes
        content = await file.read(limit + 1)
        result = await state_container.upload_service.upload_media(
            content, mime_type=file.content_type, output_type=output_type
        )
        return result.to_dict()

    @app.post("/checkout")
    async def checkout(payload: CheckoutRequest, request: Request) -> dict[str, object]:
        """Open a session and return its payment address."""
        state_container: AppContainer = request.app.state.container
        session = await state_container.session_service.create_session(
            output_type=OutputType.parse(payload.output_type, OutputType.VIDEO),
            metadata=SessionMetadata(
                file_uri=payload.metadata.file_uri,
                mode=payload.metadata.mode,
                speed=payload.metadata.speed,
                answers=payload.metadata.answers,
            ),
            buyer_wallet=payload.buyer_wallet,
        )
        return {
            "sessionId": session.session_id,
            "paymentAddress": session.payment_address,
            "requiredUsdc": session.required_usdc,
            "expiresAt": session.expires_at,
            "usdcMint": state_container.settings.usdc_mint,
        }

    @app.get("/poll/{session_id}")
    async def poll(session_id: str, request: Request) -> dict[str, object]:
        """Check payment and mint once the session is funded."""
        state_container: AppContainer = request.app.state.container
        result = await state_container.session_service.advance(session_id)
        return result.to_dict()

    @app.get("/master-address")
    async def master_address(request: Request) -> dict[str, object]:
        """Report the master wallet address and its SOL balance."""
        state_container: AppContainer = request.app.state.container
        return await state_container.treasury_service.master_status()

    @app.get("/create-collection")
    async def create_collection(
        request: Request, secret: str | None = None
    ) -> dict[str, object]:
        """Create the collection NFT; disabled unless COLLECTION_SECRET is set."""
        state_container: AppContainer = request.app.state.container
        expected = state_container.settings.collection_secret
        if not expected:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        if not secrets_match(secret, expected):
            raise Unauthorized()
        return await state_container.collection_service.create_collection()

    if is_test_mint_enabled(container.settings):

        @app.get("/test-mint")
        async def test_mint(request: Request) -> dict[str, object]:
            """Mint a throwaway session without waiting for payment."""
            state_container: AppContainer = request.app.state.container
            settings = state_container.settings
            session = await state_container.session_service.create_session(
                output_type=OutputType.PHOTO,
                metadata=SessionMetadata(
                    file_uri=settings.sample_file_uri,
                    mode="ember",
                    speed=1.0,
                    answers={"test": "true"},
                ),
                buyer_wallet=state_container.wallets.master_address(),
            )
            logger.warning(
                "Test mint requested", extra={"session_id": session.session_id}
            )
            result = await state_container.session_service.advance(
                session.session_id, skip_payment_check=True
            )
            return {
                "sessionId": session.session_id,
                "paymentAddress": session.payment_address,
                "mintResult": result.to_dict(),
            }

    return app
