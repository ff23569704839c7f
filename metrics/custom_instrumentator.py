from prometheus_fastapi_instrumentator import Instrumentator, metrics

instrumentator = Instrumentator(
    should_ignore_untemplated=True,      # /orders/123 -> /orders/{order_id}
    excluded_handlers=["/metrics", "/api/v1/health"],
    should_instrument_requests_inprogress=True,
    should_group_status_codes=False,
)

instrumentator.add(metrics.default())
instrumentator.add(metrics.request_size(should_include_handler=True, should_include_method=True))
instrumentator.add(metrics.response_size(should_include_handler=True, should_include_method=True))
