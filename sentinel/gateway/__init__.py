# Sentinel gateway: FastAPI service guarding MCP tool calls with TAP, policy and x402
