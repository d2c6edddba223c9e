"""
Kinetic Referrals Database Schema
Supports the referral network, consented care records, computed signals and
continuity-of-care handoffs.
"""

SCHEMA = """
-- =============================================================================
-- 1. PHYSIOTHERAPISTS - Network members and opt-in state
-- =============================================================================
CREATE TABLE IF NOT EXISTS physiotherapists (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    clinic_name TEXT NOT NULL,
    region TEXT NOT NULL,

    -- Specialties (JSON array: ["lower back", "sports injuries"])
    specialties TEXT NOT NULL DEFAULT '[]',

    -- Capacity: available, limited, waitlist
    capacity TEXT NOT NULL DEFAULT 'available',

    -- Network membership
    opted_in INTEGER NOT NULL DEFAULT 0,
    opted_in_at TEXT,
    opted_out_at TEXT,
    preview_mode INTEGER NOT NULL DEFAULT 0,

    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_physios_region ON physiotherapists(region);


-- =============================================================================
-- 2. PATIENTS
-- =============================================================================
CREATE TABLE IF NOT EXISTS patients (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    date_of_birth TEXT NOT NULL,
    region TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);


-- =============================================================================
-- 3. GPS - Each GP practice is one referral set
-- =============================================================================
CREATE TABLE IF NOT EXISTS gps (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    practice_name TEXT NOT NULL,
    region TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_gps_region ON gps(region);


-- =============================================================================
-- 4. EPISODES - One course of treatment with one physiotherapist
-- =============================================================================
CREATE TABLE IF NOT EXISTS episodes (
    id TEXT PRIMARY KEY,
    patient_id TEXT NOT NULL,
    physio_id TEXT NOT NULL,
    referring_gp_id TEXT,
    condition TEXT NOT NULL,

    -- Status: active, discharged, self-discharged, transferred
    status TEXT NOT NULL DEFAULT 'active',

    started_at TEXT NOT NULL,
    discharged_at TEXT,
    is_gp_referred INTEGER NOT NULL DEFAULT 0,
    prior_physio_episode_id TEXT,

    created_at TEXT DEFAULT CURRENT_TIMESTAMP,

    FOREIGN KEY (patient_id) REFERENCES patients(id),
    FOREIGN KEY (physio_id) REFERENCES physiotherapists(id),
    FOREIGN KEY (referring_gp_id) REFERENCES gps(id),
    FOREIGN KEY (prior_physio_episode_id) REFERENCES episodes(id)
);

CREATE INDEX IF NOT EXISTS idx_episodes_physio ON episodes(physio_id);
CREATE INDEX IF NOT EXISTS idx_episodes_patient ON episodes(patient_id);


-- =============================================================================
-- 5. VISITS - Dated clinical encounters within an episode
-- =============================================================================
CREATE TABLE IF NOT EXISTS visits (
    id TEXT PRIMARY KEY,
    episode_id TEXT NOT NULL,
    visit_number INTEGER NOT NULL,
    visit_date TEXT NOT NULL,

    -- Scores are nullable, missing data is valid
    pain_score INTEGER,
    function_score INTEGER,

    escalated INTEGER NOT NULL DEFAULT 0,
    treatment_adjusted INTEGER NOT NULL DEFAULT 0,
    notes_summary TEXT,

    created_at TEXT DEFAULT CURRENT_TIMESTAMP,

    UNIQUE (episode_id, visit_number),
    FOREIGN KEY (episode_id) REFERENCES episodes(id)
);

CREATE INDEX IF NOT EXISTS idx_visits_episode ON visits(episode_id);


-- =============================================================================
-- 6. CONSENTS - Episode data for signal computation
-- =============================================================================
CREATE TABLE IF NOT EXISTS consents (
    id TEXT PRIMARY KEY,
    patient_id TEXT NOT NULL,
    episode_id TEXT NOT NULL,
    physio_id TEXT NOT NULL,

    -- Status: granted, revoked
    status TEXT NOT NULL,
    scope TEXT NOT NULL DEFAULT 'episode-data-for-signal-computation',
    granted_at TEXT,
    revoked_at TEXT,

    created_at TEXT DEFAULT CURRENT_TIMESTAMP,

    FOREIGN KEY (patient_id) REFERENCES patients(id),
    FOREIGN KEY (episode_id) REFERENCES episodes(id),
    FOREIGN KEY (physio_id) REFERENCES physiotherapists(id)
);

CREATE INDEX IF NOT EXISTS idx_consents_episode ON consents(episode_id);
CREATE INDEX IF NOT EXISTS idx_consents_physio ON consents(physio_id);


-- =============================================================================
-- 7. COMPUTED_SIGNALS - Derived state, one row per (physio, signal type)
-- =============================================================================
CREATE TABLE IF NOT EXISTS computed_signals (
    id TEXT PRIMARY KEY,
    physio_id TEXT NOT NULL,

    -- Type: outcome-trajectory, clinical-decision, patient-preference
    signal_type TEXT NOT NULL,

    value INTEGER NOT NULL,          -- 0-1 stored as 0-100
    confidence TEXT NOT NULL,        -- low, medium, high
    episode_count INTEGER NOT NULL,
    computed_at TEXT NOT NULL,
    details TEXT,                    -- canonical JSON

    UNIQUE (physio_id, signal_type),
    FOREIGN KEY (physio_id) REFERENCES physiotherapists(id)
);


-- =============================================================================
-- 8. SIMULATED_ELIGIBILITY - Latest eligibility snapshot per physio
-- =============================================================================
CREATE TABLE IF NOT EXISTS simulated_eligibility (
    id TEXT PRIMARY KEY,
    physio_id TEXT NOT NULL UNIQUE,
    region TEXT NOT NULL,
    eligible_referral_sets INTEGER NOT NULL,
    total_referral_sets INTEGER NOT NULL,
    confidence_factors TEXT,         -- JSON object
    gaps TEXT,                       -- JSON array
    simulated_at TEXT NOT NULL,

    FOREIGN KEY (physio_id) REFERENCES physiotherapists(id)
);


-- =============================================================================
-- 9. TRANSITION_EVENTS - One care handoff
-- =============================================================================
CREATE TABLE IF NOT EXISTS transition_events (
    id TEXT PRIMARY KEY,
    patient_id TEXT NOT NULL,
    origin_episode_id TEXT NOT NULL,
    origin_physio_id TEXT NOT NULL,
    destination_episode_id TEXT,
    destination_physio_id TEXT,
    referring_gp_id TEXT,

    -- Type: gp-referral, patient-booking, physio-handoff
    transition_type TEXT NOT NULL,

    -- Status: initiated, consent-pending, summary-pending, review-pending,
    --         released, declined, expired
    status TEXT NOT NULL,

    initiated_at TEXT NOT NULL,
    completed_at TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,

    FOREIGN KEY (patient_id) REFERENCES patients(id),
    FOREIGN KEY (origin_episode_id) REFERENCES episodes(id),
    FOREIGN KEY (origin_physio_id) REFERENCES physiotherapists(id),
    FOREIGN KEY (destination_episode_id) REFERENCES episodes(id),
    FOREIGN KEY (destination_physio_id) REFERENCES physiotherapists(id),
    FOREIGN KEY (referring_gp_id) REFERENCES gps(id)
);

CREATE INDEX IF NOT EXISTS idx_transitions_origin ON transition_events(origin_physio_id);
CREATE INDEX IF NOT EXISTS idx_transitions_destination ON transition_events(destination_physio_id);


-- =============================================================================
-- 10. CONTINUITY_CONSENTS - Summary sharing for one transition
-- =============================================================================
CREATE TABLE IF NOT EXISTS continuity_consents (
    id TEXT PRIMARY KEY,
    patient_id TEXT NOT NULL,
    transition_event_id TEXT NOT NULL,
    origin_episode_id TEXT NOT NULL,

    -- Status: granted, revoked, expired
    status TEXT NOT NULL,
    scope TEXT NOT NULL DEFAULT 'continuity-summary-for-transition',
    granted_at TEXT,
    revoked_at TEXT,

    created_at TEXT DEFAULT CURRENT_TIMESTAMP,

    FOREIGN KEY (patient_id) REFERENCES patients(id),
    FOREIGN KEY (transition_event_id) REFERENCES transition_events(id),
    FOREIGN KEY (origin_episode_id) REFERENCES episodes(id)
);

CREATE INDEX IF NOT EXISTS idx_continuity_consents_transition ON continuity_consents(transition_event_id);


-- =============================================================================
-- 11. CONTINUITY_SUMMARIES - Generated handoff documents
-- =============================================================================
CREATE TABLE IF NOT EXISTS continuity_summaries (
    id TEXT PRIMARY KEY,
    transition_event_id TEXT NOT NULL,
    origin_episode_id TEXT NOT NULL,
    origin_physio_id TEXT NOT NULL,
    patient_id TEXT NOT NULL,

    -- Generated content (immutable once written)
    condition_framing TEXT NOT NULL,
    diagnosis_hypothesis TEXT NOT NULL,
    interventions_attempted TEXT NOT NULL,   -- JSON array
    response_profile TEXT NOT NULL,          -- JSON object
    current_status TEXT NOT NULL,
    open_considerations TEXT NOT NULL,       -- JSON array

    physio_annotations TEXT,

    -- Status: draft, pending-review, approved, released, revoked
    status TEXT NOT NULL,

    generated_at TEXT NOT NULL,
    reviewed_at TEXT,
    released_at TEXT,
    revoked_at TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,

    FOREIGN KEY (transition_event_id) REFERENCES transition_events(id),
    FOREIGN KEY (origin_episode_id) REFERENCES episodes(id),
    FOREIGN KEY (origin_physio_id) REFERENCES physiotherapists(id),
    FOREIGN KEY (patient_id) REFERENCES patients(id)
);

CREATE INDEX IF NOT EXISTS idx_summaries_transition ON continuity_summaries(transition_event_id);
"""
