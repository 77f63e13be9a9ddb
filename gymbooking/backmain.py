from fastapi import FastAPI
from gymbooking.routers import rou_booking, rou_waitlist, rou_classes
from gymbooking.configuration.monitor import instrument_fastapi

app = FastAPI(
    title="GymBooking API",
    description="Class booking, cancellation and waitlists for gym members",
    version="1.0.0"
)

# Include all routers
app.include_router(rou_classes.router)
app.include_router(rou_booking.router)
app.include_router(rou_waitlist.router)

# Instrument app with Azure Monitor
instrument_fastapi(app)

if __name__ == '__main__':
    import uvicorn
    uvicorn.run(app, host='0.0.0.0', port=8000)
