"""GraphQL query strings for the Warcraft Logs v2 API.

Every query ends with a ``RATE_LIMIT`` placeholder; use ``with_rate_limit()``
to expand it before sending.
"""

RATE_LIMIT_FRAGMENT = """
    rateLimitData {
        pointsSpentThisHour
        limitPerHour
        pointsResetIn
    }
"""


def with_rate_limit(query: str) -> str:
    return query.replace("RATE_LIMIT", RATE_LIMIT_FRAGMENT)


REPORT_FIGHTS = """
query ReportFights($code: String!) {
    reportData {
        report(code: $code) {
            title
            startTime
            endTime
            fights {
                id
                name
                startTime
                endTime
                kill
                encounterID
                difficulty
                fightPercentage
            }
        }
    }
    RATE_LIMIT
}
"""

# No type filter: players, NPCs and pets all land in the name cache
REPORT_ACTORS = """
query ReportActors($code: String!) {
    reportData {
        report(code: $code) {
            masterData {
                actors {
                    id
                    name
                    type
                    subType
                    server
                    icon
                }
            }
        }
    }
    RATE_LIMIT
}
"""

ABILITY_LOOKUP = """
query AbilityLookup($abilityID: Int!) {
    gameData {
        ability(id: $abilityID) {
            id
            name
            icon
        }
    }
    RATE_LIMIT
}
"""

REPORT_EVENTS = """
query ReportEvents($code: String!, $fightIDs: [Int]!, $startTime: Float,
                   $endTime: Float, $dataType: EventDataType,
                   $hostilityType: HostilityType, $sourceID: Int,
                   $targetID: Int, $limit: Int) {
    reportData {
        report(code: $code) {
            events(fightIDs: $fightIDs, startTime: $startTime,
                   endTime: $endTime, dataType: $dataType,
                   hostilityType: $hostilityType, sourceID: $sourceID,
                   targetID: $targetID, limit: $limit) {
                data
                nextPageTimestamp
            }
        }
    }
    RATE_LIMIT
}
"""

REPORT_TABLE = """
query ReportTable($code: String!, $fightIDs: [Int]!, $dataType: TableDataType!) {
    reportData {
        report(code: $code) {
            table(fightIDs: $fightIDs, dataType: $dataType)
        }
    }
    RATE_LIMIT
}
"""
