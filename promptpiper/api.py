from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from loguru import logger

from .config import Settings, configure_logging
from .exceptions import CompressionCancelled, ConfigurationError, DependencyError
from .manager import ModelManager
from .schemas import CompressPromptRequest, CompressionRequest, CompressionResult


def create_app(
    manager: Optional[ModelManager] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Builds the model manager on startup and, when configured, loads the
        default model before serving requests.
        """
        app_settings = settings or Settings.from_env()
        configure_logging(app_settings.log_level)
        app.state.settings = app_settings
        app.state.manager = manager or ModelManager(settings=app_settings)

        if app_settings.preload:
            logger.info(f"Preloading model '{app_settings.model}'...")
            try:
                await app.state.manager.load(app_settings.model)
            except Exception as e:
                logger.error(f"Failed to preload model: {e}")
                raise

        yield

        logger.info("Shutting down PromptPiper app...")
        await app.state.manager.shutdown()
        app.state.manager = None

    app = FastAPI(lifespan=lifespan, title="PromptPiper API")

    @app.post("/compress_prompt", response_model=CompressionResult, response_model_exclude_none=True)
    async def compress_prompt_endpoint(request: CompressPromptRequest):
        model_manager: Optional[ModelManager] = getattr(app.state, "manager", None)
        if model_manager is None:
            raise HTTPException(status_code=503, detail="Model manager is not initialized.")

        key = request.model or app.state.settings.model
        options = CompressionRequest(**request.model_dump(exclude={"model"}))
        try:
            return await model_manager.compress(key, options)
        except ConfigurationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except DependencyError as e:
            raise HTTPException(status_code=503, detail=str(e))
        except CompressionCancelled as e:
            raise HTTPException(status_code=408, detail=str(e))
        except Exception as e:
            logger.error(f"Error processing request: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    @app.get("/models")
    async def list_models():
        model_manager: Optional[ModelManager] = getattr(app.state, "manager", None)
        if model_manager is None:
            raise HTTPException(status_code=503, detail="Model manager is not initialized.")
        return [
            {
                "key": key,
                "model_name": config.model_name,
                "family": config.family.value,
                "size": config.size,
                "description": config.description,
                "status": model_manager.status(key).value,
            }
            for key, config in model_manager.registry.items()
        ]

    return app


app = create_app()
