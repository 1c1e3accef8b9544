"""HTTP helpers: MIME types, request paths, static files, sockets and query values."""