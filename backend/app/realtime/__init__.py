"""Live connection tracking, liveness sweeps and the Socket.IO transport."""
