"""
Assessment modules -- the financial aggregates and their workflows.

    estimate      Estimate aggregate
    additionals   AdditionalsLedger and entry lifecycle
    frc           FinalRepairCosting reconciliation
    assessment    assessment stage lifecycle
"""
