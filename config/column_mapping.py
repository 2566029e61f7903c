"""
Column alias configuration.

Maps each target schema field to the cleaned header names that are accepted
for it in imported CSV/JSON files.  These lists are the de facto file format
of the importer: users' exports are interpreted against them, so entries are
only ever added, never renamed or removed.

Headers are compared AFTER cleaning (see processing.file_reader.clean_header):
lowercased, whitespace/hyphen/dot runs collapsed to "_", other punctuation
dropped.  "Store Name", "store-name" and "STORE.NAME" all clean to
"store_name".
"""

# ---------------------------------------------------------------------------
# Field → accepted aliases.
# Dict order is the order in which fields claim headers during mapping, so a
# header that qualifies for two fields goes to the one declared first.
# ---------------------------------------------------------------------------
COLUMN_ALIASES: dict[str, list[str]] = {
    "store_name": [
        "store_name", "name", "brand", "shop_name", "store", "title",
        "brand_name", "business_name",
    ],
    "website": [
        "website", "url", "link", "site", "web", "shop_url", "store_url",
        "homepage", "web_site", "website_url", "official_website",
        "web_addr", "web_address",
    ],
    "instagram_name": [
        "instagram_name", "instagram", "ig", "handle", "insta",
        "instagram_handle", "social", "ig_handle", "instagram_url",
        "instagram_link", "profile_url",
    ],
    "country": ["country", "location_country", "origin", "nation"],
    "city": ["city", "location_city", "location", "town"],
    "tags": ["tags", "categories", "type", "tags_list", "labels", "keywords"],
    "description": ["description", "notes", "about", "bio", "summary", "details"],
    "price_range": [
        "price_range", "pricerange", "price", "pricing", "cost", "price_point",
    ],
}
