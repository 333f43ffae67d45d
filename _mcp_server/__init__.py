# PM Advisor - MCP Server Package
#
# Exposes the advisor review pipeline and the project artifact store to
# AI agents over the Model Context Protocol (stdio transport).
