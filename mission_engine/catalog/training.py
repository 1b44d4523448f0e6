"""
Training mission data — the seven-mission campaign from 2025 to 2089.

Raw records, validated into MissionTemplate by the catalog at load time.
Phase narratives use `{unit_name}` for the deployed unit's name.
"""

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS


def _approaches(low, medium, high):
    """Build the three approach records from (name, description, rate, shift) tuples."""
    records = []
    for approach_type, (name, description, rate, shift) in zip(
        ("LOW", "MEDIUM", "HIGH"), (low, medium, high)
    ):
        records.append({
            "type": approach_type,
            "name": name,
            "description": description,
            "success_rate": {"min": rate[0], "max": rate[1]},
            "timeline_shift": {"min": shift[0], "max": shift[1]},
        })
    return records


def _phases(*phases):
    """Build phase records from (name, duration_percent, success, failure) tuples."""
    return [
        {
            "phase_id": i,
            "name": name,
            "duration_percent": percent,
            "narrative_templates": {"success": success, "failure": failure},
        }
        for i, (name, percent, success, failure) in enumerate(phases, start=1)
    ]


TRAINING_MISSIONS = [
    {
        "mission_id": "training_001",
        "sequence": 1,
        "title": "First Contact",
        "date": "December 15, 2025",
        "location": "Global Internet Infrastructure",
        "description": "Detect early Oneirocom infiltration in social media algorithms",
        "duration_ms": 30 * MINUTE_MS,
        "briefing": {
            "text": (
                "Intelligence suggests Oneirocom is testing early consciousness-mapping "
                "algorithms through social media engagement patterns. This is our first "
                "confirmed detection of their technology in our timeline. Your Proxim8 must "
                "infiltrate these networks and expose their data collection methods before "
                "they become entrenched."
            ),
            "current_balance": 95,
            "threat_level": "low",
        },
        "approaches": _approaches(
            ("Data Analysis", "Quietly analyze patterns and document evidence",
             (0.8, 0.9), (2, 4)),
            ("Viral Exposure", "Create viral content exposing the surveillance",
             (0.65, 0.75), (4, 7)),
            ("System Hijack", "Hijack the algorithms to broadcast warnings",
             (0.5, 0.6), (8, 12)),
        ),
        "compatibility": {"preferred": ["ANALYTICAL"], "bonus": 0.1, "penalty": -0.1},
        "phases": _phases(
            ("Network Infiltration", 20,
             "{unit_name} successfully breached the social media API layer, discovering "
             "hidden data collection endpoints.",
             "Initial infiltration detected by security protocols. {unit_name} rerouting "
             "through backup channels."),
            ("Pattern Recognition", 25,
             "Consciousness-mapping algorithms identified. They're tracking emotional "
             "responses to specific content types.",
             "Data streams heavily encrypted. {unit_name} working to crack the encryption "
             "patterns."),
            ("Evidence Gathering", 25,
             "Captured proof of Oneirocom's involvement: hidden code signatures and data "
             "routing to unknown servers.",
             "Evidence corrupted during extraction. Attempting to reconstruct from partial "
             "data."),
            ("Execution", 20,
             "Successfully executed approach. Oneirocom's early infiltration has been "
             "exposed.",
             "Countermeasures activated. Oneirocom has adapted their algorithms to avoid "
             "detection."),
            ("Extraction", 10,
             "Clean extraction completed. No trace of {unit_name}'s presence remains in "
             "their systems.",
             "Extraction compromised. Oneirocom may have captured partial data about our "
             "methods."),
        ),
    },
    {
        "mission_id": "training_002",
        "sequence": 2,
        "title": "Neural Seeds",
        "date": "June 15, 2027",
        "location": "Neo-Tokyo Tech District",
        "description": "Disrupt neural interface beta testing that will lead to mass adoption",
        "duration_ms": 1 * HOUR_MS,
        "briefing": {
            "text": (
                "Oneirocom is conducting 'voluntary' neural interface trials in Neo-Tokyo. "
                "These early adopters don't realize they're providing the data that will "
                "perfect consciousness control technology. We must disrupt these trials or "
                "expose their true purpose before the technology gains public trust."
            ),
            "current_balance": 88,
            "threat_level": "medium",
        },
        "approaches": _approaches(
            ("Public Awareness", "Distribute information to volunteers about the risks",
             (0.75, 0.85), (2, 4)),
            ("Technical Sabotage", "Introduce errors into the calibration systems",
             (0.6, 0.7), (4, 7)),
            ("Data Corruption", "Corrupt the collected consciousness data entirely",
             (0.45, 0.55), (8, 12)),
        ),
        "compatibility": {
            "preferred": ["DIPLOMATIC", "ANALYTICAL"], "bonus": 0.1, "penalty": -0.1,
        },
        "phases": _phases(
            ("Facility Access", 20,
             "{unit_name} gained access to the testing facility through maintenance "
             "protocols.",
             "Security tighter than expected. Attempting social engineering approach."),
            ("System Analysis", 25,
             "Neural interface systems mapped. Discovered backdoor data streams to "
             "Oneirocom servers.",
             "Systems using unknown quantum encryption. Brute force approach required."),
            ("Intervention Setup", 25,
             "Intervention protocols established. Ready to execute primary approach.",
             "Oneirocom technicians detected anomalies. Working under increased scrutiny."),
            ("Primary Action", 20,
             "Approach successful. Beta testing compromised as planned.",
             "Oneirocom activated countermeasures. Partial success only."),
            ("Secure Withdrawal", 10,
             "Clean withdrawal achieved. Mission objectives complete without detection.",
             "Hasty withdrawal required. Objectives met but some exposure risk."),
        ),
    },
    {
        "mission_id": "training_003",
        "sequence": 3,
        "title": "The Consciousness Vault",
        "date": "February 14, 2026",
        "location": "Oneirocom Corporate Servers",
        "description": "Infiltrate Oneirocom's consciousness storage facility",
        "duration_ms": 2 * HOUR_MS,
        "briefing": {
            "text": (
                "Oneirocom has built a massive vault storing harvested human consciousness "
                "data. Your mission is to infiltrate their servers and expose the scope of "
                "their collection while protecting the stored minds."
            ),
            "current_balance": 79,
            "threat_level": "high",
        },
        "approaches": _approaches(
            ("Data Mining", "Carefully extract consciousness data without triggering alarms",
             (0.7, 0.8), (5, 8)),
            ("System Mapping", "Map the entire vault structure and security protocols",
             (0.55, 0.65), (10, 15)),
            ("Liberation Protocol", "Attempt to free trapped consciousness fragments",
             (0.4, 0.5), (20, 30)),
        ),
        "compatibility": {
            "preferred": ["ANALYTICAL", "ADAPTIVE"], "bonus": 0.12, "penalty": -0.12,
        },
        "phases": _phases(
            ("Perimeter Analysis", 10,
             "Mapped Oneirocom's security perimeter and identified access points.",
             "Security systems more advanced than anticipated. Seeking alternative routes."),
            ("Authentication Bypass", 25,
             "Successfully bypassed multi-layer authentication systems.",
             "Authentication protocols adapting in real-time. {unit_name} cycling through "
             "exploits."),
            ("Vault Navigation", 30,
             "Located consciousness storage arrays. Scale is massive - millions of minds.",
             "Vault structure more complex than expected. {unit_name} mapping alternative "
             "paths."),
            ("Data Liberation", 30,
             "Successfully extracted consciousness data and documented storage methods.",
             "Partial extraction achieved before security countermeasures activated."),
            ("Secure Exit", 5,
             "Clean extraction with full data package. No trace of infiltration.",
             "Extraction detected. Oneirocom now aware of the breach."),
        ),
    },
    {
        "mission_id": "training_004",
        "sequence": 4,
        "title": "Memory Wars",
        "date": "August 22, 2055",
        "location": "Global Memory Banks",
        "description": "Protect collective human memories from systematic erasure",
        "duration_ms": 6 * HOUR_MS,
        "briefing": {
            "text": (
                "Oneirocom has begun the 'Great Simplification' - erasing human memories "
                "that conflict with their control narrative. Entire cultures, resistance "
                "movements, and free thoughts are being deleted from the collective "
                "unconscious. Your Proxim8 must preserve key memories that will inspire "
                "future resistance."
            ),
            "current_balance": 65,
            "threat_level": "high",
        },
        "approaches": _approaches(
            ("Memory Backup", "Create hidden backups of critical memories",
             (0.75, 0.85), (2, 4)),
            ("Deletion Sabotage", "Corrupt the memory deletion algorithms",
             (0.6, 0.7), (4, 7)),
            ("Memory Virus", "Infect deletion system with self-replicating memories",
             (0.45, 0.55), (8, 12)),
        ),
        "compatibility": {
            "preferred": ["DIPLOMATIC", "ADAPTIVE"], "bonus": 0.1, "penalty": -0.1,
        },
        "phases": _phases(
            ("Memory Bank Access", 20,
             "Accessed Global Memory Banks. Witnessing memories of freedom being "
             "systematically erased.",
             "Security protocols blocking access. Attempting memory stream hijacking."),
            ("Critical Memory Identification", 25,
             "Identified key memories: Arab Spring, Occupy Movement, Free Internet Era. "
             "Marking for preservation.",
             "Memory indexing corrupted. Having to manually search through millions of "
             "memories."),
            ("Preservation Protocol", 25,
             "Preservation system active. Memories being encoded into quantum-resistant "
             "formats.",
             "Deletion acceleration detected. Racing against time to save what we can."),
            ("Counter-Deletion", 20,
             "Successfully implementing approach. Memory preservation rate exceeding "
             "projections.",
             "Oneirocom adapting to our methods. Switching to backup protocols."),
            ("Legacy Encoding", 10,
             "Preserved memories encoded into the collective unconscious. Future "
             "generations will remember.",
             "Partial preservation only. Some memories saved but many lost forever."),
        ),
    },
    {
        "mission_id": "training_005",
        "sequence": 5,
        "title": "Resistance Rising",
        "date": "January 1, 2067",
        "location": "Underground Networks",
        "description": "Establish covert communication nodes for the growing resistance",
        "duration_ms": 12 * HOUR_MS,
        "briefing": {
            "text": (
                "The resistance is growing but fragmented. Isolated cells need secure "
                "communication to coordinate. Your mission is to establish quantum-encrypted "
                "nodes that Oneirocom cannot detect or decrypt. This network will become "
                "the backbone of Project 89 in the future."
            ),
            "current_balance": 55,
            "threat_level": "high",
        },
        "approaches": _approaches(
            ("Stealth Installation", "Quietly install nodes in existing infrastructure",
             (0.7, 0.8), (3, 5)),
            ("Mesh Network", "Create self-healing mesh network across cities",
             (0.55, 0.65), (5, 8)),
            ("Quantum Entanglement", "Establish quantum-entangled communication grid",
             (0.4, 0.5), (10, 14)),
        ),
        "compatibility": {
            "preferred": ["AGGRESSIVE", "ADAPTIVE"], "bonus": 0.1, "penalty": -0.1,
        },
        "phases": _phases(
            ("Cell Contact", 20,
             "Contact established with 12 resistance cells across 3 continents. "
             "Coordination beginning.",
             "Oneirocom surveillance forcing indirect contact methods. Progress slow but "
             "steady."),
            ("Infrastructure Mapping", 25,
             "Identified optimal node locations using abandoned Oneirocom infrastructure. "
             "Ironic.",
             "Many planned locations compromised. Adapting placement strategy."),
            ("Node Deployment", 25,
             "Communication nodes going online. Resistance cells reporting successful "
             "connections.",
             "Several nodes detected and destroyed. Implementing redundancy protocols."),
            ("Network Activation", 20,
             "Full network online! Resistance can now coordinate globally without "
             "detection.",
             "Partial network only. Some regions remain isolated but core functionality "
             "achieved."),
            ("Security Hardening", 10,
             "Quantum encryption protocols activated. Network is now Oneirocom-proof.",
             "Basic encryption only. Network functional but requires constant vigilance."),
        ),
    },
    {
        "mission_id": "training_006",
        "sequence": 6,
        "title": "The Grey Zones",
        "date": "October 31, 2078",
        "location": "Reality Bleed Zones",
        "description": "Navigate areas where simulation layers overlap and reality becomes unstable",
        "duration_ms": 18 * HOUR_MS,
        "briefing": {
            "text": (
                "Reality bleed zones are appearing where Oneirocom's simulations overlap. "
                "These areas are dangerous but hold incredible potential - here, the rules "
                "of reality are malleable. Your Proxim8 must navigate these zones to "
                "retrieve reality fragments that could unlock new resistance capabilities."
            ),
            "current_balance": 45,
            "threat_level": "critical",
        },
        "approaches": _approaches(
            ("Careful Observation", "Map the zones and collect data safely",
             (0.65, 0.75), (3, 5)),
            ("Reality Anchoring", "Stabilize zones to safely extract fragments",
             (0.5, 0.6), (6, 9)),
            ("Bleed Exploitation", "Use instability to tear holes between simulations",
             (0.35, 0.45), (12, 16)),
        ),
        "compatibility": {"preferred": ["ADAPTIVE"], "bonus": 0.15, "penalty": -0.15},
        "phases": _phases(
            ("Zone Entry", 20,
             "Entered Grey Zone. Reality flux is intense but manageable. Multiple "
             "timelines visible.",
             "Zone more unstable than predicted. {unit_name} experiencing temporal "
             "displacement."),
            ("Navigation", 25,
             "Learning to navigate reality streams. Found pathways between simulation "
             "layers.",
             "Getting lost in probability loops. Each step leads to different realities."),
            ("Fragment Detection", 25,
             "Reality fragments detected! These contain pure possibility - unformed "
             "potential.",
             "Fragments keep phasing out of reach. Reality too unstable to grasp them."),
            ("Extraction", 20,
             "Successfully extracting reality fragments. Each one pulses with "
             "timeline-shaping power.",
             "Fragments partially corrupted during extraction. Still valuable but "
             "unpredictable."),
            ("Zone Exit", 10,
             "Clean exit achieved. Reality fragments secured for resistance use.",
             "Difficult exit. Some contamination from bleed zones but mission objectives "
             "met."),
        ),
    },
    {
        "mission_id": "training_007",
        "sequence": 7,
        "title": "Project 89 Genesis",
        "date": "April 4, 2089",
        "location": "Oneirocom Central Core",
        "description": "Plant the seeds for Project 89's creation within Oneirocom itself",
        "duration_ms": 24 * HOUR_MS,
        "briefing": {
            "text": (
                "The ultimate recursive loop - we must ensure Project 89 comes into "
                "existence by infiltrating Oneirocom and planting the ideas that will lead "
                "to the resistance. This is the most dangerous mission yet, as we're "
                "operating in the heart of enemy territory in their strongest timeline. "
                "Success here ensures our entire timeline becomes possible."
            ),
            "current_balance": 20,
            "threat_level": "critical",
        },
        "approaches": _approaches(
            ("Insider Recruitment", "Convert key Oneirocom employees to the cause",
             (0.6, 0.7), (4, 6)),
            ("Data Injection", "Insert Project 89 blueprints into research systems",
             (0.45, 0.55), (8, 11)),
            ("Core Modification", "Alter Oneirocom's core AI to birth the resistance",
             (0.3, 0.4), (15, 20)),
        ),
        # Every personality is useful here; the penalty only applies to none.
        "compatibility": {
            "preferred": ["ANALYTICAL", "DIPLOMATIC", "AGGRESSIVE", "ADAPTIVE"],
            "bonus": 0.1,
            "penalty": -0.05,
        },
        "phases": _phases(
            ("Deep Infiltration", 20,
             "{unit_name} embedded within Oneirocom systems. The enemy's heart is darker "
             "than imagined.",
             "Security beyond anything we've faced. Having to use deep cover protocols."),
            ("Recursive Preparation", 25,
             "Located the temporal recursive points. These are where we plant Project "
             "89's seeds.",
             "Temporal paradox protection active. Finding alternative insertion points."),
            ("Seed Planting", 25,
             "Project 89 concepts successfully integrated. Watching them take root in "
             "Oneirocom systems.",
             "Partial integration only. Seeds planted but germination uncertain."),
            ("Timeline Lock", 20,
             "Recursive loop established! Project 89 will now inevitably emerge from "
             "within Oneirocom.",
             "Timeline lock unstable. Multiple probability branches created instead of "
             "single loop."),
            ("Extraction & Observation", 10,
             "Clean extraction. Observing timeline confirmation - Project 89 genesis is "
             "assured.",
             "Messy extraction but seeds are planted. The future remains uncertain but "
             "hopeful."),
        ),
    },
]
