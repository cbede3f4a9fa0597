"""Location-triggered weather alerts for mobile devices."""
