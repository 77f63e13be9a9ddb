import logging
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from azure.monitor.opentelemetry.exporter import AzureMonitorTraceExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from gymbooking.configuration.config import Config

# Configure logger
logger = logging.getLogger("gymbooking")
handler = logging.StreamHandler()
handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
logger.addHandler(handler)
logger.setLevel(logging.INFO)

resource = Resource(attributes={
    SERVICE_NAME: "gymbooking"
})

def setup_tracing():
    """
    Set up the tracer provider. Spans are exported to Azure Monitor when
    APPINSIGHTS_INSTRUMENTATIONKEY holds a connection string, and stay
    in-process otherwise (tests, local runs).
    """
    try:
        trace_provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(trace_provider)

        if Config.APPLICATIONINSIGHTS_CONNECTION_STRING:
            exporter = AzureMonitorTraceExporter(
                connection_string=Config.APPLICATIONINSIGHTS_CONNECTION_STRING
            )
            trace_provider.add_span_processor(BatchSpanProcessor(exporter))
            logger.info("Azure Monitor exporter enabled")
        else:
            logger.info("No Application Insights connection string, spans are not exported")
    except Exception as e:
        logger.error(f"Failed to set up tracing: {str(e)}")
    # No-op tracer when setup failed
    return trace.get_tracer("gymbooking")

tracer = setup_tracing()

def instrument_fastapi(app):
    """Trace every request handled by the FastAPI app."""
    try:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("FastAPI app instrumented")
    except Exception as e:
        logger.error(f"Failed to instrument FastAPI app: {str(e)}")

def _set_attributes(span, properties):
    for key, value in (properties or {}).items():
        span.set_attribute(key, str(value))

def start_span(name, context=None, kind=None, attributes=None):
    """Open a span around a booking operation (INTERNAL unless told otherwise)."""
    return tracer.start_as_current_span(
        name,
        context=context,
        kind=kind or trace.SpanKind.INTERNAL,
        attributes={key: str(value) for key, value in (attributes or {}).items()},
    )

def log_event(event_name, properties=None):
    """Record a business event (booking confirmed, entry promoted...) as a span and a log line."""
    try:
        with tracer.start_as_current_span(event_name) as span:
            _set_attributes(span, properties)
        logger.info(f"Event: {event_name}", extra={"custom_properties": properties})
    except Exception as e:
        logger.error(f"Failed to log event '{event_name}': {str(e)}")

def log_exception(exception, properties=None):
    """
    Record a failed operation.

    Booking rule rejections (errors flagged `expected`, e.g. a full class) are
    warnings tagged with their reason code. Anything else marks the span as
    an error and is logged with its traceback.
    """
    expected = getattr(exception, "expected", False)
    try:
        with tracer.start_as_current_span("exception") as span:
            span.record_exception(exception)
            _set_attributes(span, properties)
            if expected:
                span.set_attribute("booking.reason_code", exception.code.value)
            else:
                span.set_status(trace.StatusCode.ERROR, str(exception))
        if expected:
            logger.warning(f"Rejected [{exception.code.value}]: {str(exception)}",
                           extra={"custom_properties": properties})
        else:
            logger.error(f"Exception: {str(exception)}", exc_info=exception,
                         extra={"custom_properties": properties})
    except Exception as e:
        logger.error(f"Failed to log exception: {str(e)}")

def log_metric(metric_name, value, properties=None):
    """Record a numeric measurement such as a transaction retry count."""
    try:
        with tracer.start_as_current_span(f"metric:{metric_name}") as span:
            span.set_attribute("metric.value", value)
            _set_attributes(span, properties)
        logger.info(f"Metric: {metric_name}={value}", extra={"custom_properties": properties})
    except Exception as e:
        logger.error(f"Failed to log metric '{metric_name}': {str(e)}")
