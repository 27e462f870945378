"""Built-in rule templates for common automation patterns."""

from autorule.schemas.rule import RuleCreate, RuleTemplate

TEMPLATE_CATEGORIES: dict[str, str] = {
    "email": "Email",
    "social": "Social Media",
    "productivity": "Productivity",
    "monitoring": "Monitoring",
    "data": "Data & Reports",
}


def _instructions(*lines: str) -> list[dict]:
    return [{"type": "instruction", "content": line} for line in lines]


RULE_TEMPLATES: list[RuleTemplate] = [
    RuleTemplate(
        id="daily-email-digest",
        name="Daily Email Digest",
        description="Summarize all unread emails every morning and send a digest.",
        category="email",
        template=RuleCreate(
            name="Daily Email Digest",
            description="Summarizes unread emails every morning",
            activation_mode="scheduled",
            schedule_enabled=True,
            schedule_interval="daily",
            topic_condition="Daily email summary",
            execution_steps=_instructions(
                "Fetch all unread emails from Gmail",
                "Summarize each email in 1-2 sentences, grouped by sender",
                "Flag any emails that look urgent or time-sensitive",
            ),
        ),
    ),
    RuleTemplate(
        id="auto-reply-clients",
        name="Auto-Reply to Clients",
        description="When a client emails, acknowledge receipt and notify your team.",
        category="email",
        template=RuleCreate(
            name="Auto-Reply to Clients",
            description="Acknowledges client emails and notifies the team",
            accepted_triggers=["GMAIL_NEW_GMAIL_MESSAGE"],
            topic_condition="New email from a client or customer",
            execution_steps=_instructions(
                "Check if the sender is a client (not internal, not spam/newsletter)",
                'Reply to the email thread acknowledging receipt: "Thanks for your email, '
                "we'll get back to you shortly.\"",
                "Send a Slack message to #team with a summary of the client email",
            ),
            output_config={"platform": "slack", "destination": "#team", "format": "summary"},
        ),
    ),
    RuleTemplate(
        id="email-label-organizer",
        name="Email Auto-Organizer",
        description="Automatically categorize and label incoming emails.",
        category="email",
        template=RuleCreate(
            name="Email Auto-Organizer",
            description="Labels and categorizes incoming emails automatically",
            accepted_triggers=["GMAIL_NEW_GMAIL_MESSAGE"],
            topic_condition="Any new email received",
            execution_steps=_instructions(
                "Analyze the email content and determine category: work, personal, newsletter, billing, or spam",
                "Apply the appropriate Gmail label based on category",
                "If the email is urgent or from a VIP sender, star it",
            ),
        ),
    ),
    RuleTemplate(
        id="social-mention-monitor",
        name="Social Mention Monitor",
        description="Track mentions of your brand or keywords across social media.",
        category="social",
        template=RuleCreate(
            name="Social Mention Monitor",
            description="Monitors social media for brand mentions",
            activation_mode="scheduled",
            schedule_enabled=True,
            schedule_interval="hourly",
            topic_condition="Social media mention monitoring",
            execution_steps=_instructions(
                "Search Twitter/X for mentions of [YOUR BRAND] or [YOUR KEYWORDS]",
                "Filter out spam and irrelevant results",
                "Summarize new mentions with sentiment (positive/negative/neutral) and send to Slack",
            ),
            output_config={"platform": "slack", "destination": "#social", "format": "summary"},
        ),
    ),
    RuleTemplate(
        id="content-repurposer",
        name="Content Repurposer",
        description="Turn a blog post or article into social media posts.",
        category="social",
        template=RuleCreate(
            name="Content Repurposer",
            description="Converts long-form content into social media posts",
            activation_mode="manual",
            topic_condition="Content repurposing request",
            execution_steps=_instructions(
                "Read the provided article/blog post content",
                "Create 3 Twitter/X posts (under 280 chars each) highlighting key points",
                "Create 1 LinkedIn post (professional tone, 150-300 words)",
            ),
            output_config={"platform": "none", "format": "detailed"},
        ),
    ),
    RuleTemplate(
        id="morning-briefing",
        name="Morning Briefing",
        description="Daily summary of calendar, emails, and tasks to start your day.",
        category="productivity",
        template=RuleCreate(
            name="Morning Briefing",
            description="Daily morning summary of calendar, emails, and priorities",
            activation_mode="scheduled",
            schedule_enabled=True,
            schedule_interval="daily",
            topic_condition="Morning briefing",
            execution_steps=_instructions(
                "Fetch today's calendar events and list them with times",
                "Summarize unread emails (top 5 most important)",
                "Check for any upcoming deadlines this week",
                "Compile everything into a brief morning report",
            ),
        ),
    ),
    RuleTemplate(
        id="weekly-review",
        name="Weekly Review",
        description="End-of-week summary of what happened and what's coming up.",
        category="productivity",
        template=RuleCreate(
            name="Weekly Review",
            description="Compiles a weekly summary",
            activation_mode="scheduled",
            schedule_enabled=True,
            schedule_interval="weekly",
            topic_condition="Weekly review summary",
            execution_steps=_instructions(
                "Summarize all automation executions from this week (successes, failures, patterns)",
                "List key emails sent and received",
                "Review calendar for next week's important events",
            ),
            output_config={"platform": "none", "format": "detailed"},
        ),
    ),
    RuleTemplate(
        id="github-issue-notifier",
        name="GitHub Issue Notifier",
        description="Get notified when new issues are created in your repos.",
        category="monitoring",
        template=RuleCreate(
            name="GitHub Issue Notifier",
            description="Monitors GitHub repos for new issues and notifies on Slack",
            accepted_triggers=["GITHUB_ISSUE_ADDED_EVENT"],
            topic_condition="New GitHub issue created",
            execution_steps=_instructions(
                "Extract the issue title, description, labels, and author",
                "Classify priority based on labels and content (critical/high/medium/low)",
                "Send a formatted notification to Slack with issue details and priority",
            ),
            output_config={"platform": "slack", "destination": "#dev", "format": "summary"},
        ),
    ),
    RuleTemplate(
        id="lead-enrichment",
        name="Lead Enrichment",
        description="Enrich new leads with company info and add to your CRM.",
        category="data",
        template=RuleCreate(
            name="Lead Enrichment",
            description="Enriches new leads with company data",
            activation_mode="manual",
            topic_condition="New lead to enrich",
            execution_steps=_instructions(
                "Look up the company from the lead's email domain",
                "Find company size, industry, location, and recent news",
                "Score the lead based on company fit (1-10)",
            ),
            output_config={"platform": "none", "format": "detailed"},
        ),
    ),
    RuleTemplate(
        id="data-collector",
        name="Scheduled Data Collector",
        description="Collect data from APIs or websites on a schedule.",
        category="data",
        template=RuleCreate(
            name="Scheduled Data Collector",
            description="Periodically collects data from configured sources",
            activation_mode="scheduled",
            schedule_enabled=True,
            schedule_interval="daily",
            topic_condition="Scheduled data collection",
            execution_steps=_instructions(
                "Fetch data from [YOUR DATA SOURCE / API / WEBSITE]",
                "Parse and extract the relevant fields",
                "Compare with previous data to identify changes or trends",
            ),
            output_config={"platform": "none", "format": "raw"},
        ),
    ),
]


def templates_by_category() -> dict[str, list[str]]:
    """Template ids grouped by category, in category order."""
    grouped: dict[str, list[str]] = {category: [] for category in TEMPLATE_CATEGORIES}
    for template in RULE_TEMPLATES:
        grouped.setdefault(template.category, []).append(template.id)
    return grouped
