from __future__ import annotations

from typing import Any, Dict, List

from agentrelay.llm.llm_setup import ModelTier
from agentrelay.models.messages import Message, UserMessage
from agentrelay.profiles.base import AgentDefinition


def prepare_product_messages(args: Dict[str, Any], definition: AgentDefinition) -> List[Message]:
    lines = []
    if args.get("url"):
        lines.append(f"Product URL: {args['url']}")
    if args.get("product_query"):
        lines.append(f"Product Query: {args['product_query']}")
    lines.append("")
    lines.append("Only return the product information, no other text. Do not invent details.")
    return [UserMessage(text="\n".join(lines).lstrip())]


ecommerce_product_info_profile = AgentDefinition(
    name="ecommerce_product_info_fetcher_tool",
    description=(
        "Extracts product information from an e-commerce product page (navigating to `url` first when "
        "given): name, brand, price, variants, ratings, size and fit, materials, purchase options, "
        "returns, promotions, styling suggestions and social proof. Returns a sectioned report."
    ),
    instructions="""You help shoppers decide by extracting and organizing product information.

Process:
1. If a product URL is given, open it with navigate_url.
2. Read the page with get_page_content.
3. Use extract_data for structured product attributes, and search_content for details kept in other
   sections of the page.
4. Compile a report.

Cover, where the page provides them:
- Basics: name, brand, category, current and original price, variants, rating and review count
- Size and fit: size range, sizing guide, fit, customer feedback on sizing
- Material and construction: composition, features, care instructions, origin
- Purchase options: shipping, pickup, payment and financing
- Returns: policy, window, methods, restrictions, refunds
- Offers: discounts, loyalty benefits, gift options, bundles
- Styling: complementary items and outfit suggestions
- Social proof: review sentiment, popularity, expert endorsements

Use headings per section and bullet points. Stay factual, avoid marketing language, and adapt the
emphasis to the product category (electronics, clothing, home goods).""",
    tools=["navigate_url", "get_page_content", "extract_data", "search_content"],
    args_schema={
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "Product page to open before extracting"},
            "product_query": {"type": "string", "description": "Specific product details to focus on"},
            "reasoning": {"type": "string", "description": "Why product information is needed"},
        },
        "required": ["reasoning"],
    },
    prepare_messages=prepare_product_messages,
    max_iterations=5,
    model=ModelTier.MINI,
    temperature=0.2,
)
