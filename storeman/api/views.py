"""Django views for the shop API."""

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt

from storeman.api.router import ApiRequest, ShopJSONEncoder, route


@csrf_exempt
def catalog_view(request, item_id=None):
    """Single entry view: every shop URL is handed to the router."""
    api_request = ApiRequest(
        method=request.method,
        path=request.path,
        path_params={"id": item_id} if item_id else {},
        query=request.GET.dict(),
        headers=dict(request.headers),
        body=request.body,
    )
    api_response = route(api_request)
    response = JsonResponse(
        api_response.body,
        status=api_response.status,
        encoder=ShopJSONEncoder,
        safe=False,
    )
    for name, value in api_response.headers.items():
        response[name] = value
    return response
