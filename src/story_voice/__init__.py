"""Story voice generator: text-to-speech proxy server and terminal client."""
