# modules/job_harvest/lib/roster.py
"""
Built-in company roster, used when no roster file is configured.
Entries are (name, platform, identifier) or, for Workday,
(name, platform, identifier, domain, site_id).
"""

from __future__ import annotations

from .models import AtsPlatform, CompanyTarget

_G = AtsPlatform.GREENHOUSE
_L = AtsPlatform.LEVER
_A = AtsPlatform.ASHBY
_W = AtsPlatform.WORKDAY

_ENTRIES: tuple[tuple, ...] = (
    # ---- Greenhouse: consumer & marketplaces ----
    ("Airbnb", _G, "airbnb"),
    ("Stripe", _G, "stripe"),
    ("Twitch", _G, "twitch"),
    ("GitLab", _G, "gitlab"),
    ("DoorDash", _G, "doordashsoftware"),
    ("Pinterest", _G, "pinterest"),
    ("Robinhood", _G, "robinhood"),
    ("Coinbase", _G, "coinbase"),
    ("Dropbox", _G, "dropbox"),
    ("Discord", _G, "discord"),
    ("Instacart", _G, "instacart"),
    ("Peloton", _G, "peloton"),
    ("Roku", _G, "roku"),
    ("Wayfair", _G, "wayfair"),
    ("SoFi", _G, "sofi"),
    ("Okta", _G, "okta"),
    ("Brex", _G, "brex"),
    ("Plaid", _G, "plaid"),
    ("Databricks", _G, "databricks"),
    ("Gusto", _G, "gusto"),
    ("HashiCorp", _G, "hashicorp"),
    ("Twilio", _G, "twilio"),
    ("Cloudflare", _G, "cloudflare"),
    ("Asana", _G, "asana"),
    ("Duolingo", _G, "duolingo"),
    ("Vercel", _G, "vercel"),
    ("Reddit", _G, "reddit"),
    ("Lyft", _G, "lyft"),
    ("Datadog", _G, "datadoghq"),
    ("Square", _G, "squareup"),
    ("Postman", _G, "postman"),
    ("Coursera", _G, "coursera"),
    ("Khan Academy", _G, "khanacademy"),
    ("SpaceX", _G, "spacex"),
    ("Revolut", _G, "revolut"),
    ("Klarna", _G, "klarna"),
    ("Carta", _G, "carta"),
    ("ThoughtWorks", _G, "thoughtworks"),
    # ---- Greenhouse: developer tools & data ----
    ("GitHub", _G, "github"),
    ("Netlify", _G, "netlify"),
    ("DigitalOcean", _G, "digitalocean"),
    ("Grafana", _G, "grafana"),
    ("CircleCI", _G, "circleci"),
    ("LaunchDarkly", _G, "launchdarkly"),
    ("PagerDuty", _G, "pagerduty"),
    ("Elastic", _G, "elastic"),
    ("MongoDB", _G, "mongodb"),
    ("CockroachDB", _G, "cockroachdb"),
    ("Webflow", _G, "webflow"),
    ("Retool", _G, "retool"),
    ("Zapier", _G, "zapier"),
    # ---- Greenhouse: fintech ----
    ("Ramp", _G, "ramp"),
    ("Mercury", _G, "mercury"),
    ("Chime", _G, "chime"),
    ("Affirm", _G, "affirm"),
    ("Marqeta", _G, "marqeta"),
    ("Wise", _G, "wise"),
    ("Monzo", _G, "monzo"),
    # ---- Greenhouse: AI, remote-first, India ----
    ("Hugging Face", _G, "huggingface"),
    ("Weights & Biases", _G, "wandb"),
    ("Anyscale", _G, "anyscale"),
    ("Cohere", _G, "cohere"),
    ("Remote.com", _G, "remote"),
    ("Automattic", _G, "automattic"),
    ("Razorpay", _G, "razorpay"),
    ("PhonePe", _G, "phonepe"),
    ("Groww", _G, "groww"),
    ("Meesho", _G, "meesho"),
    ("Freshworks", _G, "freshworks"),
    ("BrowserStack", _G, "browserstack"),
    # ---- Lever ----
    ("Khatabook", _L, "khatabook"),
    ("Zepto", _L, "zepto"),
    ("Urban Company", _L, "urbancompany"),
    ("Unacademy", _L, "unacademy"),
    ("ShareChat", _L, "sharechat"),
    ("Figma", _L, "figma"),
    ("Netflix", _L, "netflix"),
    ("Atlassian", _L, "atlassian"),
    ("Canva", _L, "canva"),
    ("Palantir", _L, "palantir"),
    ("Shopify", _L, "shopify"),
    ("Yelp", _L, "yelp"),
    ("The New York Times", _L, "nytimes"),
    # ---- Ashby ----
    ("Notion", _A, "notion"),
    ("Deel", _A, "deel"),
    ("Rippling", _A, "rippling"),
    ("Linear", _A, "linear"),
    ("Vanta", _A, "vanta"),
    ("OpenAI", _A, "openai"),
    ("Anthropic", _A, "anthropic"),
    ("Perplexity", _A, "perplexity"),
    ("Scale AI", _A, "scale"),
    ("Together AI", _A, "togetherai"),
    # ---- Workday RSS ----
    ("Uber", _W, "uber", "uber.wd1.myworkdayjobs.com", "Uber_Careers"),
    ("Salesforce", _W, "salesforce", "salesforce.wd1.myworkdayjobs.com", "External_Career_Site"),
    ("Nvidia", _W, "nvidia", "nvidia.wd5.myworkdayjobs.com", "NVIDIAExternalCareerSite"),
    ("Mastercard", _W, "mastercard", "mastercard.wd1.myworkdayjobs.com", "CorporateCareers"),
    ("Visa", _W, "visa", "visa.wd1.myworkdayjobs.com", "Careers"),
    ("Adobe", _W, "adobe", "adobe.wd5.myworkdayjobs.com", "external_experienced"),
    ("Palo Alto Networks", _W, "paloaltonetworks", "paloaltonetworks.wd1.myworkdayjobs.com", "US"),
    ("CrowdStrike", _W, "crowdstrike", "crowdstrike.wd5.myworkdayjobs.com", "crowdstrikecareers"),
    ("Zscaler", _W, "zscaler", "zscaler.wd1.myworkdayjobs.com", "External"),
    ("Snowflake", _W, "snowflake", "snowflake.wd1.myworkdayjobs.com", "Careers"),
)


def default_roster() -> list[CompanyTarget]:
    out: list[CompanyTarget] = []
    for entry in _ENTRIES:
        name, platform, identifier, *workday = entry
        out.append(
            CompanyTarget(
                name=name,
                platform=platform,
                identifier=identifier,
                workday_domain=workday[0] if workday else None,
                workday_site_id=workday[1] if workday else None,
            )
        )
    return out
