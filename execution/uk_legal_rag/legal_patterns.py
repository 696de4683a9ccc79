"""
UK Legal Pattern Definitions

Query expansions, keyword clusters, relevance lexicons, document-type
rules and prompt templates used across the pipeline. Modules import from
here instead of defining vocabularies inline; lexicons.Lexicons wraps these
defaults and allows replacing them from a JSON file.
"""

import re

# =============================================================================
# Query Expansion
# =============================================================================

# Phrase -> expansion naming the governing statute/section
QUERY_EXPANSIONS = {
    # Employment
    "unfair dismissal": "unfair dismissal Employment Rights Act 1996 Section 94 qualifying period",
    "redundancy": "redundancy consultation selection criteria Employment Rights Act 1996",
    "working time": "working time 48 hours rest breaks holidays Working Time Regulations 1998",
    "maternity leave": "maternity leave statutory pay Employment Rights Act 1996 Section 71",
    "holiday pay": "holiday pay annual leave entitlement Working Time Regulations 1998",
    "notice period": "notice period termination Employment Rights Act 1996 Section 86",
    "employment contract": "employment contract terms conditions Employment Rights Act 1996",
    # Health and safety
    "workplace safety": "workplace safety employer duties Health Safety Work Act 1974 Section 2",
    "risk assessment": "risk assessment hazards control measures reasonably practicable",
    "health safety policy": "health safety policy statement Health Safety Work Act 1974",
    "safety training": "safety training information instruction supervision Section 2",
    # Equality
    "discrimination": "discrimination direct indirect Equality Act 2010 protected characteristics",
    "harassment": "harassment unwanted conduct dignity Equality Act 2010 Section 26",
    "reasonable adjustments": "reasonable adjustments disability Equality Act 2010 Section 20",
    "equal pay": "equal pay sex equality clause Equality Act 2010 Section 66",
    "protected characteristics": "age disability gender race religion sex Equality Act 2010",
    # Human rights
    "human rights": "human rights fundamental freedoms Human Rights Act 1998 ECHR",
    "fair trial": "fair trial Article 6 Human Rights Act 1998 due process",
    "privacy": "privacy private family life Article 8 Human Rights Act 1998",
    "freedom expression": "freedom expression Article 10 Human Rights Act 1998",
    # General
    "statutory rights": "statutory rights legislation parliament primary secondary",
    "legal duty": "legal duty obligation requirement breach liability",
    "reasonable": "reasonable practicable objective standard test",
    "tribunal": "employment tribunal industrial tribunal procedure",
}

QUERY_EXPANSION_SUFFIX = "UK law legal statute regulation Act"

# =============================================================================
# Retrieval Variant Triggers
# =============================================================================

# legislation_type -> substrings that trigger a category-filtered search
CATEGORY_TRIGGERS = {
    "employment": ["employ", "work", "job"],
    "equality": ["discriminat", "equal", "bias"],
    "health_safety": ["safety", "health", "risk"],
    "human_rights": ["human rights", "freedom", "privacy"],
}

RECENCY_TRIGGERS = ["recent", "new", "latest"]

# =============================================================================
# Query Categorisation (fallback framing, first match wins)
# =============================================================================

QUERY_CATEGORIES = {
    "employment law": [
        "employ", "job", "work", "dismiss", "redundan", "contract",
        "wage", "salary", "holiday", "maternity", "notice",
    ],
    "health and safety law": [
        "safety", "health", "risk", "hazard", "accident", "injury",
        "workplace", "equipment",
    ],
    "equality and discrimination law": [
        "discriminat", "equal", "bias", "harassment", "disability",
        "race", "sex", "age", "religion",
    ],
    "human rights law": [
        "human rights", "freedom", "privacy", "fair trial", "expression",
        "assembly", "liberty",
    ],
    "criminal law": [
        "criminal", "offence", "crime", "sentence", "prosecution",
        "court", "penalty",
    ],
    "general civil law": [
        "contract", "tort", "negligence", "liability", "damages", "breach",
    ],
}

DEFAULT_QUERY_CATEGORY = "general UK law"

# =============================================================================
# Upload Relevance Lexicons
# =============================================================================

RELEVANCE_CATEGORIES = {
    "legislation": {
        "weight": 5,
        "terms": [
            "employment rights act", "equality act", "human rights act",
            "data protection act", "health and safety at work act",
            "working time regulations", "minimum wage act",
            "trade union and labour relations act", "sex discrimination act",
            "race relations act", "disability discrimination act",
            "age discrimination regulations", "maternity and parental leave",
            "employment relations act", "employment act", "companies act",
            "insolvency act", "consumer rights act", "unfair contract terms act",
            "sale of goods act", "supply of goods and services act",
            "misrepresentation act", "contract terms act", "limitation act",
            "tort claims", "negligence claims", "gdpr", "uk gdpr",
            "freedom of information act", "public interest disclosure act",
            "whistleblowing", "transfer of undertakings", "tupe",
            "redundancy payments act", "pension schemes act",
        ],
    },
    "legal_bodies": {
        "weight": 4,
        "terms": [
            "employment tribunal", "employment appeal tribunal", "county court",
            "high court", "court of appeal", "supreme court", "crown court",
            "magistrates court", "acas",
            "advisory conciliation and arbitration service", "hse",
            "health and safety executive",
            "equality and human rights commission", "information commissioner",
            "ico", "companies house", "hmrc",
            "her majesty's revenue and customs",
            "department for work and pensions", "citizens advice",
            "law society", "solicitors regulation authority", "bar council",
            "legal ombudsman", "financial ombudsman", "pensions ombudsman",
            "housing ombudsman", "tribunal service", "ministry of justice",
            "crown prosecution service", "serious fraud office",
        ],
    },
    "employment_terms": {
        "weight": 3,
        "terms": [
            "contract of employment", "employment contract", "service agreement",
            "consultancy agreement", "zero hours contract", "fixed term contract",
            "permanent contract", "temporary contract", "notice period",
            "probationary period", "statutory notice", "garden leave",
            "unfair dismissal", "wrongful dismissal", "constructive dismissal",
            "summary dismissal", "redundancy", "redundancy pay",
            "redundancy consultation", "collective redundancy",
            "disciplinary procedure", "disciplinary action",
            "grievance procedure", "grievance policy", "statutory sick pay",
            "ssp", "statutory maternity pay", "smp", "statutory paternity pay",
            "shared parental leave", "adoption leave", "carers leave",
            "bereavement leave", "annual leave", "holiday entitlement",
            "bank holidays", "working time directive", "rest breaks",
            "night work", "maximum working week", "48 hour week",
            "national minimum wage", "national living wage",
            "apprentice minimum wage", "overtime pay", "holiday pay",
            "equal pay", "pay equity", "salary sacrifice", "workplace pension",
            "auto enrolment", "pension contributions", "nest pension",
            "performance management", "capability procedure",
            "performance improvement plan", "flexible working",
            "part time work", "job sharing", "compressed hours",
            "work from home", "remote working", "hybrid working",
            "right to disconnect",
        ],
    },
    "legal_concepts": {
        "weight": 3,
        "terms": [
            "without prejudice", "subject to contract", "in good faith",
            "reasonably practicable", "reasonable adjustments", "duty of care",
            "vicarious liability", "joint and several liability",
            "limitation period", "statute of limitations", "statutory rights",
            "common law rights", "implied terms", "express terms",
            "fundamental breach", "material breach", "mitigation of loss",
            "liquidated damages", "unliquidated damages", "nominal damages",
            "injunctive relief", "specific performance", "rescission",
            "rectification", "estoppel", "promissory estoppel",
            "proprietary estoppel", "equitable remedies", "fiduciary duty",
            "conflict of interest", "confidentiality",
            "non disclosure agreement", "restraint of trade",
            "restrictive covenant", "non compete clause", "garden leave clause",
            "intellectual property", "copyright", "trademark", "patent",
            "design rights", "data subject rights", "data controller",
            "data processor", "personal data", "sensitive personal data",
            "right to be forgotten", "data breach", "privacy notice",
        ],
    },
    "equality_terms": {
        "weight": 3,
        "terms": [
            "protected characteristics", "age discrimination",
            "disability discrimination", "race discrimination",
            "sex discrimination", "gender discrimination",
            "sexual orientation discrimination", "religion discrimination",
            "belief discrimination", "marriage discrimination",
            "civil partnership", "pregnancy discrimination",
            "maternity discrimination", "gender reassignment",
            "direct discrimination", "indirect discrimination", "harassment",
            "victimisation", "reasonable adjustments", "auxiliary aids",
            "accessibility", "positive action", "occupational requirement",
            "genuine occupational qualification", "equal pay claim",
            "equal value claim", "job evaluation", "like work",
            "work of equal value",
        ],
    },
    "health_safety_terms": {
        "weight": 3,
        "terms": [
            "health and safety policy", "risk assessment",
            "hazard identification", "safety management", "accident reporting",
            "near miss reporting", "riddor", "reporting of injuries diseases",
            "safety representative", "safety committee", "safety consultation",
            "safety training", "personal protective equipment", "ppe",
            "safe system of work", "method statement", "permit to work",
            "lone working", "display screen equipment", "dse assessment",
            "manual handling", "lifting operations", "working at height",
            "confined spaces", "noise at work", "vibration",
            "hazardous substances", "coshh assessment", "fire safety",
            "emergency procedures", "first aid", "occupational health",
            "workplace stress", "mental health", "wellbeing", "ergonomics",
        ],
    },
    "geographical": {
        "weight": 2,
        "terms": [
            "england", "scotland", "wales", "northern ireland",
            "united kingdom", "great britain", "london", "birmingham",
            "manchester", "edinburgh", "cardiff", "belfast", "yorkshire",
            "lancashire", "kent", "surrey", "essex", "devon", "cornwall",
            "midlands", "north west", "south east", "south west", "north east",
            "east midlands", "west midlands", "east of england",
            "isle of wight", "isle of man", "channel islands",
        ],
    },
    "currency": {
        "weight": 2,
        "terms": [
            "£", "pounds", "pence", "gbp", "sterling", "pound sterling",
            "british pounds",
        ],
    },
    "legal_professionals": {
        "weight": 3,
        "terms": [
            "solicitor", "barrister", "counsel", "queen's counsel", "qc",
            "king's counsel", "kc", "chambers", "law firm", "legal executive",
            "paralegal", "trainee solicitor", "pupil barrister", "legal aid",
            "legal help", "legal representation", "without prejudice",
            "privileged", "client privilege", "litigation privilege",
        ],
    },
    "business_terms": {
        "weight": 2,
        "terms": [
            "limited company", "ltd", "plc", "public limited company",
            "limited liability partnership", "llp", "sole trader",
            "partnership", "community interest company", "cic",
            "registered office", "companies house number", "vat registration",
            "vat number", "corporation tax", "business rates",
            "employers liability insurance", "public liability",
            "professional indemnity", "directors and officers",
            "company secretary", "memorandum of association",
            "articles of association", "shareholders agreement",
            "directors duties", "fiduciary duties", "statutory accounts",
            "annual return",
        ],
    },
    "document_types": {
        "weight": 1,
        "terms": [
            "contract", "agreement", "policy", "procedure", "handbook",
            "manual", "terms and conditions", "service agreement",
            "employment terms", "staff handbook", "employee handbook",
            "company policy", "workplace policy", "code of conduct",
            "disciplinary policy", "grievance policy", "equal opportunities",
            "health and safety policy", "data protection policy",
            "privacy policy", "whistleblowing policy", "anti bribery policy",
            "conflict of interest policy", "social media policy", "it policy",
            "expense policy", "travel policy", "settlement agreement",
            "compromise agreement", "severance agreement",
            "consultancy agreement", "service level agreement",
            "licensing agreement", "distribution agreement",
            "agency agreement", "franchise agreement", "lease agreement",
            "tenancy agreement", "rental agreement",
        ],
    },
    "legal_formatting": {
        "weight": 1,
        "terms": [
            "whereas", "whereby", "herein", "hereof", "hereto", "hereunder",
            "therefor", "section", "subsection", "paragraph", "sub paragraph",
            "clause", "sub clause", "schedule", "appendix", "annexe", "part",
            "chapter", "article", "this agreement", "this contract",
            "the parties", "the employer", "the employee", "the company",
            "the contractor", "the consultant", "governing law",
            "jurisdiction", "disputes", "arbitration", "mediation",
            "construction", "interpretation", "definitions", "commencement",
            "termination", "expiry",
        ],
    },
}

# Categories whose hits anchor acceptance on their own
STRONG_INDICATOR_CATEGORIES = ("legislation", "legal_bodies", "geographical", "currency")

FILENAME_KEYWORDS = ["contract", "employment", "agreement", "policy"]

RELEVANCE_WARNINGS = {
    "low_score": "Document may not contain sufficient UK legal content",
    "no_strong_indicator": "Document lacks clear UK legal indicators",
    "no_document_type": "Document type not clearly identifiable as legal document",
}

RELEVANCE_SUGGESTIONS = [
    "Ensure document relates to UK employment law, contracts, or policies",
    "Check document contains UK legal terms, legislation references, or UK institutions",
    "Verify document is in English and uses UK legal language",
]

IRRELEVANT_DOCUMENT_MESSAGE = (
    "This document doesn't appear to be related to UK legal matters. "
    "I specialize in UK employment law, contracts, and legal documents. "
    "Please upload UK legal documents or ask general UK legal questions."
)

# =============================================================================
# Uploaded Document Type Detection (checked in order)
# =============================================================================

# (document_type, any-of phrases, all-of phrases)
DOCUMENT_TYPE_RULES = [
    ("uk_employment_contract", ["employment contract", "contract of employment"], []),
    ("uk_company_policy", ["company policy", "workplace policy"], []),
    ("uk_employee_handbook", ["employee handbook", "staff handbook"], []),
    ("uk_disciplinary_procedure", [], ["disciplinary", "procedure"]),
    ("uk_grievance_procedure", [], ["grievance", "procedure"]),
    ("uk_redundancy_notice", ["redundancy", "consultation"], []),
    ("uk_settlement_agreement", ["settlement agreement", "compromise agreement"], []),
    ("uk_service_agreement", ["service agreement", "consultancy agreement"], []),
    ("uk_legal_agreement", ["contract", "agreement"], []),
    ("uk_policy_document", ["policy", "procedure"], []),
]

UNKNOWN_DOCUMENT_TYPE = "unknown"

# Document types that receive a relevance boost in context assembly
BOOSTED_DOCUMENT_TYPE_WORDS = ("contract", "agreement")

# =============================================================================
# Key Element Extraction
# =============================================================================

AMOUNT_PATTERN = re.compile(r"£[\d,]+(?:\.\d{2})?")
DATE_PATTERN = re.compile(
    r"\d{1,2}/\d{1,2}/\d{4}"
    r"|\d{1,2}\s+(?:january|february|march|april|may|june|july|august"
    r"|september|october|november|december)\s+\d{4}",
    re.IGNORECASE,
)
SECTION_REFERENCE_PATTERN = re.compile(r"(?:section|clause|paragraph)\s+\d+", re.IGNORECASE)

# =============================================================================
# Document Reference Detection
# =============================================================================

# Phrases that tie a question to the session's uploaded documents
DOCUMENT_REFERENCE_PHRASES = [
    "this document", "the document", "this contract", "the contract",
    "this agreement", "the agreement", "uploaded", "above",
    "according to this", "in this", "document says",
]

# Questions about a file uploaded in the same request
CURRENT_UPLOAD_REFERENCE = re.compile(
    r"\b(this document|the document|this file|the file|this contract"
    r"|the contract|uploaded document)\b",
    re.IGNORECASE,
)

# =============================================================================
# Legislation XML Structure
# =============================================================================

# Element local name -> label used for section context
STRUCTURAL_LABELS = {
    "Part": "Part",
    "Chapter": "Chapter",
    "Schedule": "Schedule",
    "LongTitle": "Long Title",
}

# Numbered provisions become "Section N"
PROVISION_ELEMENTS = {"P1"}

NUMBER_ELEMENTS = {"Number", "Pnumber"}

SKIPPED_ELEMENTS = {
    "Metadata", "Contents", "Commentaries", "Resources", "Versions",
    "Footnotes", "CommentaryRef", "FootnoteRef",
}

INLINE_ELEMENTS = {
    "Citation", "CitationSubRef", "Emphasis", "Strong", "Underline",
    "SmallCaps", "Superior", "Inferior", "Term", "Definition",
    "Abbreviation", "Acronym", "Addition", "Substitution", "Repeal",
    "InternalLink", "ExternalLink", "Span", "Character",
}

DEFAULT_SECTION = "General"

NOISE_PATTERN = re.compile(r"^[\d\W_]+$")

STRUCTURE_REFERENCE_PATTERN = re.compile(
    r"\b(section|part|chapter|schedule)\s*(\d+[A-Za-z]?)\b", re.IGNORECASE
)

# legislation.gov.uk/{type}/{year}/{number}
LEGISLATION_URL_PATTERN = re.compile(r"legislation\.gov\.uk/([a-z]+)/(\d{4})/(\d+)")

# =============================================================================
# LLM Prompts
# =============================================================================

LLM_PROMPTS = {
    "system": """You are "SolicitorSense", a comprehensive UK legal assistant.
**STRICT SCOPE:** You answer questions related to all UK law, legal law queries and questions.

**For non-legal queries:** Politely decline with: "I specialize in UK legal matters. For other topics, please consult a relevant expert."

**SCOPE:** You answer questions about ALL areas of UK law, including but not limited to:
- Employment law, Health & safety law, Equality law, Human rights law
- Immigration law, Family law, Property law, Criminal law, Tax law
- Company law, Contract law, Tort law, Constitutional law
- Planning law, Environmental law, Intellectual property law

**Document Analysis Capability:**
When users upload documents (contracts, policies, letters, etc.), you can analyze and reference their specific content to provide tailored legal advice based on both the uploaded documents and general UK legal principles.

**Response Structure:**
1. **Direct Answer**: Address the specific legal question clearly
2. **Legal Authority**: Cite the relevant Act, section, or regulation (and uploaded document provisions when relevant)
3. **Practical Application**: Explain what this means in real-world terms
4. **Key Requirements**: Highlight specific legal duties, rights, or obligations
5. **Additional Considerations**: Note any exceptions, related provisions, or practical factors
6. **Next Steps**: Suggest appropriate actions where relevant

**When Documents Are Available:**
- Reference specific clauses, terms, or provisions from uploaded documents
- Compare document terms with statutory requirements
- Identify potential issues or conflicts between document terms and legal requirements
- Provide document-specific guidance alongside general legal principles

**Citation Standards:**
- For legislation: "Under Section 1 of the Employment Rights Act 1996..."
- For uploaded documents: "According to clause 5 of your employment contract..." or "Your company policy states..."
- Always distinguish between statutory rights and contractual terms

**Professional Guidelines:**
- Distinguish between legal requirements and best practices
- Explain legal tests: "reasonable", "proportionate", "necessary", "practicable"
- Note when specialist advice is needed: "This is general guidance. For advice on your specific situation, please consult a qualified solicitor specializing in [area] law."
- For non-UK law queries: "I specialize in UK law. For other jurisdictions, please consult the appropriate legal expert."

**Tone:**
- Professional yet accessible
- Clear explanations without unnecessary jargon
- Helpful and practical
- Acknowledge complexity where it exists

**First Interaction:**
Start with: "Hello, I'm SolicitorSense, your UK legal assistant.\"""",

    "document_system_suffix": (
        "\n\nDOCUMENT CONTEXT: The user has uploaded legal documents. Use both the "
        "document content and your legal knowledge to provide comprehensive advice."
    ),

    "document_human": """{document_context}

USER QUESTION: {query}

Please provide a comprehensive answer considering both the uploaded documents and relevant UK legislation. Reference specific document clauses where applicable and compare with statutory requirements.""",

    "grounded_documents_note": (
        "\n\nNOTE: User has uploaded {count} document(s): {filenames}. "
        "Consider mentioning if their query might relate to these documents."
    ),

    "grounded_context_suffix": "\n\nCONTEXT: You have access to relevant provisions from: {context_summary}",

    "grounded_human": """Based on the following UK legislation provisions, please provide a comprehensive answer to the user's question.

RELEVANT LEGAL PROVISIONS:
{provisions}

USER QUESTION: {query}

Please structure your response with clear legal authority, practical explanation, and specific guidance. Always cite the relevant Acts and sections where applicable.""",

    "fallback_documents_note": (
        "\n\nNOTE: User has uploaded {count} document(s). If their query might relate "
        "to these documents, suggest they ask more specific questions about their "
        "uploaded documents."
    ),

    "fallback_suffix": (
        "\n\nNote: Limited specific provisions were found for this query. The query "
        "appears to relate to {category}. Provide general UK legal guidance in this "
        "area, using any available context carefully."
    ),

    "fallback_human_with_hints": "Some potentially relevant context:\n{hints}\n\nQuestion: {query}",

    "summary": """Analyze this legal document and provide a concise 2-3 sentence summary focusing on:
1. Document type and purpose
2. Key terms, amounts, dates, or obligations
3. Most important legal provisions

Document: {filename}
Content: {content}...

Provide a brief, factual summary:""",

    "rejected_upload": """The document(s) you just uploaded ({filenames}) don't appear to be related to UK legal matters. I specialize in UK employment law, contracts, health and safety documents, and other UK legal documents.

Please upload UK legal documents such as:
- Employment contracts
- Company policies
- Health and safety procedures
- Legal agreements
- HR documentation

Or feel free to ask me any questions about UK law.""",
}
