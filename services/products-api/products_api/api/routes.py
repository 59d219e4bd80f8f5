from fastapi import APIRouter, Depends, Request, Response
from starlette.concurrency import run_in_threadpool

from products_api.core.deps import get_handlers
from products_api.handlers import ProductHandlers
from products_api.http import ApiRequest

router = APIRouter(tags=["products"])


async def _invoke(request: Request, handlers: ProductHandlers) -> Response:
    api_request = ApiRequest(
        method=request.method,
        path=request.url.path,
        headers=dict(request.headers),
        path_params=dict(request.path_params),
        body=await request.body(),
        request_id=getattr(request.state, "request_id", None),
    )
    # Handlers block on the key-set fetch and the database; keep them off the event loop.
    result = await run_in_threadpool(handlers.dispatch, api_request)
    return Response(content=result.body, status_code=result.status_code, headers=dict(result.headers))


@router.get("/products")
async def http_list_products(request: Request, handlers: ProductHandlers = Depends(get_handlers)):
    return await _invoke(request, handlers)


@router.post("/products", status_code=201)
async def http_create_product(request: Request, handlers: ProductHandlers = Depends(get_handlers)):
    return await _invoke(request, handlers)


@router.get("/products/{productId}")
async def http_get_product(request: Request, handlers: ProductHandlers = Depends(get_handlers)):
    return await _invoke(request, handlers)


@router.put("/products/{productId}")
async def http_update_product(request: Request, handlers: ProductHandlers = Depends(get_handlers)):
    return await _invoke(request, handlers)


@router.delete("/products/{productId}")
async def http_delete_product(request: Request, handlers: ProductHandlers = Depends(get_handlers)):
    return await _invoke(request, handlers)
