"""
MCP Server for brewing water chemistry calculations.

This server provides brewing water tools: salt addition composition,
water analysis, mash pH estimation (simple, Kaiser and charge-balance
models), acid dosing, salt optimization, staged mash/sparge/boil
planning and reference catalog lookups.

Each tool lives in its own module under tools/ for easier maintenance.

Environment:
    BREWING_WATER_LOG_LEVEL: Logging level (default INFO)
    BREWING_WATER_LOG_FILE: Optional log file path
"""

import logging
import os

from mcp.server.fastmcp import FastMCP

LOG_LEVEL = os.environ.get("BREWING_WATER_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.environ.get("BREWING_WATER_LOG_FILE")

handlers = [logging.StreamHandler()]
if LOG_FILE:
    handlers.append(logging.FileHandler(LOG_FILE))

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=handlers
)
logger = logging.getLogger("brewing-water-mcp")

# Initialize the MCP server
mcp = FastMCP("brewing-water-calculator")

from tools.water_profile import calculate_water_profile
from tools.water_metrics import analyze_water
from tools.mash_ph import estimate_mash_ph
from tools.acid_dosing import calculate_acid_addition
from tools.optimization_tools import optimize_salt_additions
from tools.staged_distribution import plan_staged_additions
from tools.brewing_calculation import calculate_brewing_water
from tools.reference_data import get_reference_data

mcp.tool()(calculate_water_profile)     # Tool 1: Salt additions -> achieved water
mcp.tool()(analyze_water)               # Tool 2: Brewing suitability analysis
mcp.tool()(estimate_mash_ph)            # Tool 3: Mash pH from water and grain bill
mcp.tool()(calculate_acid_addition)     # Tool 4: Acid needed for a target mash pH
mcp.tool()(optimize_salt_additions)     # Tool 5: Salts toward a target profile
mcp.tool()(plan_staged_additions)       # Tool 6: Mash/sparge/boil placement
mcp.tool()(calculate_brewing_water)     # Tool 7: End-to-end manual or auto calculation
mcp.tool()(get_reference_data)          # Tool 8: Salt, acid, grain and profile catalogs

REGISTERED_TOOLS = [
    ("calculate_water_profile", "Salt additions to achieved water, by volume mode"),
    ("analyze_water", "Calcium level, flavor profile, hardness, ion balance"),
    ("estimate_mash_ph", "Simple, Kaiser or advanced mash pH estimate"),
    ("calculate_acid_addition", "Lactic, phosphoric, sulfuric, hydrochloric or citric dose"),
    ("optimize_salt_additions", "Minimal, balanced or exact salt optimization"),
    ("plan_staged_additions", "Rule-based mash/sparge/boil plan"),
    ("calculate_brewing_water", "Manual or auto end-to-end calculation"),
    ("get_reference_data", "Catalog lookups and listings"),
]


if __name__ == "__main__":
    logger.info("Starting Brewing Water MCP server...")
    logger.info(f"Registered {len(REGISTERED_TOOLS)} tools:")
    for i, (name, summary) in enumerate(REGISTERED_TOOLS, 1):
        logger.info(f"  {i}. {name}: {summary}")

    # Start the server
    mcp.run()
