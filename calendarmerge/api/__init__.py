"""HTTP boundary for calendarmerge: aiohttp application, routes and middleware."""
